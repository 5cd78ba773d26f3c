"""Error types raised by the analysis pipeline."""


class ValidationError(ValueError):
    """Malformed query: bad coordinate, empty parameter set or inverted dates.

    Raised before any network call. This is the only error that crosses the
    analysis boundary.
    """


class ProviderError(Exception):
    """Provider call failed (network, timeout, non-2xx or unparseable payload).

    Never reaches the caller: the fetcher logs it and substitutes fallback data.
    """
