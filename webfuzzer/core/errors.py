"""Exception taxonomy for the fuzzing engine.

Only ConfigurationError stops a scan from starting; everything else is
recovered where it happens and shows up in metrics and logs.
"""


class FuzzerError(RuntimeError):
    """Base class for engine failures."""


class ConfigurationError(ValueError):
    """Invalid scan parameters, raised synchronously at start()."""


class DiscoveryMethodFailure(FuzzerError):
    def __init__(self, method: str, cause: BaseException):
        super().__init__(f"discovery method {method!r} failed: {cause}")
        self.method = method
        self.cause = cause


class PayloadEncodingFailure(FuzzerError):
    def __init__(self, scheme: str, payload: str, cause: BaseException):
        super().__init__(f"encoder {scheme!r} failed on {payload[:40]!r}: {cause}")
        self.scheme = scheme
        self.payload = payload
        self.cause = cause


class DispatchError(FuzzerError):
    """Injection or network failure for a single test unit."""
