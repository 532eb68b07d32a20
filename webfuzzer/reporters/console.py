from colorama import init as colorama_init, Fore, Style
from datetime import datetime
colorama_init(autoreset=True)


class Log:
    """Console log sink. verbose: -1 quiet, 0 warnings, 1 info, 2 debug."""

    def __init__(self, verbose: int = 1):
        self.verbose = verbose
        self.PAY = Fore.MAGENTA

    def _time(self):
        return datetime.now().strftime("[%H:%M:%S]")

    def _fmt(self, level: str, color: str):
        return f"{self._time()} {color}[{level}]{Style.RESET_ALL}"

    def log(self, message: str, level: str = "info"):
        handler = {
            "info": self.info, "warn": self.warn, "warning": self.warn,
            "ok": self.ok, "success": self.ok, "error": self.fail,
            "fail": self.fail, "debug": self.debug,
        }.get(level.lower(), self.info)
        handler(message)

    def info(self, msg: str):
        if self.verbose >= 1:
            print(f"{self._fmt('INFO', Fore.CYAN)} {msg}")

    def warn(self, msg: str):
        if self.verbose >= 0:
            print(f"{self._fmt('WARNING', Fore.YELLOW)} {msg}")

    def ok(self, msg: str):
        if self.verbose >= 0:
            print(f"{self._fmt('SUCCESS', Fore.GREEN)} {msg}")

    def fail(self, msg: str):
        if self.verbose >= 0:
            print(f"{self._fmt('FAIL', Fore.RED)} {msg}")

    def debug(self, msg: str):
        if self.verbose >= 2:
            print(f"{self._fmt('DEBUG', Fore.MAGENTA)} {msg}")

    def finding(self, risk: str, endpoint: str, location: str, payload: str,
                confidence: float, signatures=()):
        sev_col = {"critical": Fore.RED, "high": Fore.RED, "medium": Fore.YELLOW,
                   "low": Fore.GREEN}.get(risk, Fore.WHITE)
        sigs = ", ".join(signatures)
        print(f"{self._fmt('VULNERABLE', sev_col)} {endpoint} @ {location} "
              f"= {Fore.MAGENTA}{payload}{Style.RESET_ALL} "
              f"{Style.DIM}({confidence:.2f}%{' ' + sigs if sigs else ''}){Style.RESET_ALL}")


class NullLog(Log):
    """Drop-in sink used when no logger is supplied."""

    def __init__(self):
        super().__init__(verbose=-1)

    def log(self, message: str, level: str = "info"):
        pass

    def finding(self, *args, **kwargs):
        pass
