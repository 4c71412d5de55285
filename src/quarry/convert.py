import re

from quarry.exception import QuarryError

DOLLAR_KEYWORD = re.compile(r"(\$([a-z][a-z0-9_]*))")
DOLLAR_POSITIONAL = re.compile(r"(\$(\d+))")


def convert_sql_params(
    query: str, positional_sub: str = r"%s", keyword_sub: str = r"%(\2)s"
) -> str:
    """Convert `$name` and `$1` style placeholders into the style used by
    a database driver

    Args:
        query (str): The query text
        positional_sub (str, optional): Substitution for `$1` style
            placeholders. Defaults to `r"%s"`.
        keyword_sub (str, optional): Substitution for `$name` style
            placeholders. Defaults to `r"%(\\2)s"`.

    Raises:
        QuarryError: If both placeholder styles are mixed

    Returns:
        str: The converted query
    """
    matches = 0
    if DOLLAR_KEYWORD.search(query):
        matches += 1
        query = DOLLAR_KEYWORD.sub(keyword_sub, query, 0)
    if DOLLAR_POSITIONAL.search(query):
        matches += 1
        query = DOLLAR_POSITIONAL.sub(positional_sub, query, 0)
    if matches > 1:
        raise QuarryError(f"Could not properly convert SQL params {matches}")
    return query
