"""Process exit codes of the ``strapiq`` command.

Every :class:`~strapiq.exceptions.StrapiError` subclass names one of these
as its ``exit_code``, so a shell script can branch on ``$?`` instead of
parsing the error text::

    strapiq find articles 42 --json > article.json
    case $? in
        4) echo "no such article" ;;
        6) echo "Strapi is down" ;;
    esac
"""

EXIT_GENERIC_FAILURE = 1
"""Anything not covered below."""

EXIT_INVALID_USAGE = 2
"""Bad arguments, a bad filter expression or invalid configuration."""

EXIT_AUTH_FAILURE = 3
"""Strapi refused the credentials (401 / 403) or ``auth`` is unknown."""

EXIT_NOT_FOUND = 4
"""Strapi answered 404, or ``find`` matched no entry."""

EXIT_SERVER_ERROR = 5
"""Strapi answered with another error status or an empty body."""

EXIT_CONNECTION_ERROR = 6
"""No HTTP exchange completed: DNS, refused connection, timeout or TLS."""

EXIT_BAD_REQUEST = 7
"""Strapi answered 400, usually a malformed filter or payload."""

EXIT_INTERRUPTED = 130
"""Ctrl-C."""
