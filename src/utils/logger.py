import logging
import sys
import typing as T

dispenser_logger = logging.getLogger("dispenser")


class Colors:
    HEADER = "\033[95m"
    OKBLUE = "\033[94m"
    OKGREEN = "\033[92m"
    WARNING = "\033[93m"
    FAIL = "\033[31m"
    ENDC = "\033[0m"
    BOLD = "\033[1m"


def is_color_supported() -> bool:
    return hasattr(sys.stdout, "isatty") and sys.stdout.isatty()


def make_formatter_printer(color: str, log_level: int = logging.INFO) -> T.Callable:
    def formatter(message: str, *args, **kwargs) -> str:
        if args or kwargs:
            formatted_text = message.format(*args, **kwargs)
        else:
            formatted_text = message

        if is_color_supported():
            return color + formatted_text + Colors.ENDC
        return formatted_text

    def printer(message: str, *args, **kwargs) -> None:
        dispenser_logger.log(log_level, message)

        print(formatter(message, *args, **kwargs))
        sys.stdout.flush()

    return printer


print_ok_blue = make_formatter_printer(Colors.OKBLUE)
print_ok = make_formatter_printer(Colors.OKGREEN)
print_warn = make_formatter_printer(Colors.WARNING, log_level=logging.WARNING)
print_fail = make_formatter_printer(Colors.FAIL, log_level=logging.ERROR)
print_bold = make_formatter_printer(Colors.BOLD)
