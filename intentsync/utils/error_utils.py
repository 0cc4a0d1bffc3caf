"""Common error and validation utility functions
"""

from typing import Optional


def check_for_missing_env_vars(env_vars: dict):
    """Checks whether any required environment values are undefined.

    :param env_vars: The dictionary of environment variables.
    """
    # Missing settings are unrecoverable at start-up.
    missing_keys = [k for k, v in env_vars.items() if v is None or v == ""]
    if missing_keys:
        missing_keys_str = ", ".join(missing_keys)
        raise EnvironmentError(
            f"Missing required environment variables: {missing_keys_str}"
        )


def describe_error(error: Optional[BaseException]) -> str:
    """Returns a short single-line description of an exception for result records.

    :param error: The exception, if any.
    :return: "<ExceptionType>: <message>" or an empty string.
    """
    if error is None:
        return ""
    message = str(error).splitlines()[0] if str(error) else ""
    return f"{type(error).__name__}: {message}" if message else type(error).__name__
