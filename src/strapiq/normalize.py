"""Response normalisation.

Strapi v4 and v5 wrap every record in ``data`` / ``attributes`` envelopes,
relations included, so a single article reads::

    {"data": {"id": 1, "attributes": {"title": "Hello",
        "author": {"data": {"id": 5, "attributes": {"name": "John"}}}}}}

Three independent transforms reshape such payloads, always applied in this
order by :func:`normalize_response`:

1. :func:`squash_data_fields` -- merge ``data`` / ``attributes`` wrappers
   into their parent, giving ``{"id": 1, "title": "Hello", "author":
   {"id": 5, "name": "John"}}``.
2. :func:`convert_to_absolute_urls` -- prefix relative asset URLs with the
   upload base URL, including images embedded in HTML and Markdown text.
3. :func:`convert_image_fields` -- replace file objects by their URL,
   keeping the full object under ``<field>_squash``.

Lists and mappings are treated as one loose array type, the shape existing
consumers of these payloads expect: a list merged into an empty level stays a
list, integer keys are renumbered on merge, and a container whose members
are all ``None`` collapses to ``None``.

Every walk carries a depth counter and raises
:class:`~strapiq.exceptions.NormalizationError` past :data:`MAX_DEPTH`.
"""

from __future__ import annotations

import re
import time
from collections.abc import Iterator
from typing import Any, Union

from strapiq.exceptions import NormalizationError

MAX_DEPTH = 256
"""Deepest nesting any transform will walk."""

Container = Union[dict, list]

# Relative src in an <img> tag; absolute and protocol-relative URLs are skipped.
_HTML_IMAGE = re.compile(r"""<img([^>]*) src=(['"])(?!(?:https?|ftp):|//)/?([^'"]*)\2""")

# Markdown image.  Matches absolute URLs too, which then get prefixed twice.
_MARKDOWN_IMAGE = re.compile(r"!\[(.*)]\((.*)\)")

_NUMERIC_KEY = re.compile(r"^\s*[+-]?(\d+\.?\d*|\.\d+)([eE][+-]?\d+)?$")


def _check_depth(depth: int, max_depth: int) -> None:
    if depth > max_depth:
        raise NormalizationError(f"Response nested deeper than {max_depth} levels")


def _items(container: Container) -> Iterator[tuple[Any, Any]]:
    if isinstance(container, list):
        return iter(enumerate(container))
    return iter(container.items())


def _is_numeric_key(key: Any) -> bool:
    if isinstance(key, bool):
        return False
    if isinstance(key, (int, float)):
        return True
    return isinstance(key, str) and bool(_NUMERIC_KEY.match(key))


def _as_dict(container: Container) -> dict:
    if isinstance(container, list):
        return dict(enumerate(container))
    return container


def _compact(result: dict, was_list: bool) -> Container:
    """Render a dict whose keys are exactly ``0..n-1`` as a list."""
    if not result:
        return [] if was_list else {}
    if all(isinstance(k, int) and not isinstance(k, bool) for k in result) and list(
        result
    ) == list(range(len(result))):
        return list(result.values())
    return result


def _merge(base: Container, extra: Container) -> Container:
    """Merge two containers as loose arrays.

    String keys from *extra* overwrite those in *base* in place; integer
    keys from both are appended and renumbered from zero.
    """
    if isinstance(base, list) and isinstance(extra, list):
        return base + extra
    if not base and isinstance(extra, list):
        return list(extra)

    merged: dict = {}
    counter = 0
    for source in (base, extra):
        for key, value in _items(source):
            if isinstance(key, int):
                merged[counter] = value
                counter += 1
            else:
                merged[key] = value
    return merged


def _all_null(container: Container) -> bool:
    return all(value is None for _, value in _items(container))


# --------------------------------------------------------------------------- #
# Flatten
# --------------------------------------------------------------------------- #


def squash_data_fields(value: Any, max_depth: int = MAX_DEPTH) -> Container:
    """Remove ``data`` / ``attributes`` wrappers from a parsed JSON value.

    - ``None`` becomes ``{}``; a bare scalar becomes ``[scalar]``.
    - A ``data`` or ``attributes`` key holding a container is merged into
      the current level.  When both the level and a ``data`` mapping
      define a non-null ``id``, the wrapper's id is renamed ``data_id``.
    - Any other container whose members are all ``None``, or which is
      empty once flattened, becomes ``None``.  Flattening an already
      flat value therefore changes nothing.

    Example::

        squash_data_fields({"id": 1, "data": {"id": 2, "attributes": {"name": "Test"}}})
        # {"id": 1, "name": "Test", "data_id": 2}
    """
    if value is None:
        return {}
    if not isinstance(value, (dict, list)):
        return [value]
    return _flatten(value, 0, max_depth)


def _flatten(container: Container, depth: int, max_depth: int) -> Container:
    _check_depth(depth, max_depth)
    result: dict = {}
    for key, item in _items(container):
        if not isinstance(item, (dict, list)):
            result[key] = item
            continue

        if key in ("attributes", "data"):
            if (
                key == "data"
                and isinstance(item, dict)
                and result.get("id") is not None
                and item.get("id") is not None
            ):
                data_id = item["id"]
                item = {k: v for k, v in item.items() if k != "id"}
                item["data_id"] = data_id
            result = _as_dict(_flatten(_merge(result, item), depth + 1, max_depth))
        elif _all_null(item):
            result[key] = None
        else:
            flattened = _flatten(item, depth + 1, max_depth)
            result[key] = flattened if flattened else None

    return _compact(result, isinstance(container, list))


# --------------------------------------------------------------------------- #
# Absolute URLs
# --------------------------------------------------------------------------- #


def convert_to_absolute_urls(value: Any, base_url: str, max_depth: int = MAX_DEPTH) -> Any:
    """Prefix relative asset URLs with *base_url*.

    - A ``url`` key whose sibling ``ext`` is set and whose value starts
      with ``/`` is prefixed.
    - Any other non-empty string has relative ``<img src>`` paths and
      all Markdown image paths prefixed.  Markdown images that are already
      absolute are prefixed too; callers storing absolute URLs in
      Markdown should leave this transform off.

    Example::

        convert_to_absolute_urls({"url": "/u.jpg", "ext": ".jpg"}, "https://cdn.x")
        # {"url": "https://cdn.x/u.jpg", "ext": ".jpg"}
    """
    if not isinstance(value, (dict, list)):
        return value
    return _absolutize(value, base_url, 0, max_depth)


def _absolutize(container: Container, base_url: str, depth: int, max_depth: int) -> Container:
    _check_depth(depth, max_depth)
    result = list(container) if isinstance(container, list) else dict(container)
    for key, item in _items(container):
        if isinstance(item, (dict, list)):
            result[key] = _absolutize(item, base_url, depth + 1, max_depth)
            continue
        if not isinstance(item, str) or not item:
            continue

        if (
            key == "url"
            and isinstance(container, dict)
            and container.get("ext") is not None
            and item.startswith("/")
        ):
            result[key] = base_url + item
        else:
            result[key] = rewrite_embedded_images(item, base_url)
    return result


def rewrite_embedded_images(text: str, base_url: str) -> str:
    """Prefix image paths found in HTML ``<img>`` tags and Markdown image syntax.

    A relative HTML ``src`` loses one leading ``/`` if it has one, then
    gets ``base_url + "/"`` in front, so ``/a.png`` and ``a.png`` both end
    up as ``<base_url>/a.png``.  The rewritten attribute is always written
    as ``src="..."`` with double quotes, whatever quotes the input used.
    Markdown paths are prefixed as they are, absolute ones included.
    """
    text = _HTML_IMAGE.sub(
        lambda m: f'<img{m.group(1)} src="{base_url}/{m.group(3)}"', text
    )
    return _MARKDOWN_IMAGE.sub(
        lambda m: f"![{m.group(1)}]({base_url}{m.group(2)})", text
    )


# --------------------------------------------------------------------------- #
# Image fields
# --------------------------------------------------------------------------- #


def convert_image_fields(value: Any, max_depth: int = MAX_DEPTH) -> Any:
    """Replace file objects (mappings with ``url`` and ``mime``) by their URL.

    Under a named key the full object is kept as ``<key>_squash``; elements
    of an image list (numeric keys) get no sibling.

    Example::

        convert_image_fields({"avatar": {"url": "/a.jpg", "mime": "image/jpeg"}})
        # {"avatar": "/a.jpg", "avatar_squash": {"url": "/a.jpg", "mime": "image/jpeg"}}
    """
    if not isinstance(value, (dict, list)):
        return value
    return _squash_images(value, 0, max_depth)


def _squash_images(container: Container, depth: int, max_depth: int) -> Container:
    _check_depth(depth, max_depth)
    result = list(container) if isinstance(container, list) else dict(container)
    originals: dict[str, dict] = {}
    for key, item in _items(container):
        if isinstance(item, dict) and "url" in item and "mime" in item:
            result[key] = item["url"]
            if not _is_numeric_key(key):
                originals[f"{key}_squash"] = item
        elif isinstance(item, (dict, list)):
            result[key] = _squash_images(item, depth + 1, max_depth)

    if originals and isinstance(result, dict):
        result.update(originals)
    return result


# --------------------------------------------------------------------------- #
# Pipeline
# --------------------------------------------------------------------------- #


def normalize_response(
    payload: Any,
    version: int,
    flatten: bool = True,
    absolute_url: bool = False,
    squash_image: bool = False,
    upload_url: str = "",
    max_depth: int = MAX_DEPTH,
) -> tuple[Any, dict[str, Any]]:
    """Run the normalisation pipeline on a parsed response body.

    The top-level ``meta`` mapping is split off before flattening and
    returned separately, with a ``response`` unix timestamp added.
    Legacy (v3) payloads carry no envelope and are never flattened.

    Args:
        payload: Parsed JSON body.
        version: Strapi major version of the response.
        flatten: Remove ``data`` / ``attributes`` wrappers.
        absolute_url: Prefix relative asset URLs with *upload_url*.
        squash_image: Replace file objects by their URL.
        upload_url: Base URL for :func:`convert_to_absolute_urls`.
        max_depth: Deepest nesting to walk.

    Returns:
        A ``(data, meta)`` tuple.
    """
    meta: dict[str, Any] = {"response": int(time.time())}
    data = payload

    if version >= 4:
        if isinstance(payload, dict) and "meta" in payload:
            data = {k: v for k, v in payload.items() if k != "meta"}
            if isinstance(payload["meta"], dict):
                meta.update(payload["meta"])

        list_response = isinstance(data, dict) and isinstance(data.get("data"), list)
        if flatten:
            data = squash_data_fields(data, max_depth)
        elif isinstance(data, dict) and "data" in data:
            data = data["data"]
        if list_response and not data:
            data = []

    if absolute_url:
        data = convert_to_absolute_urls(data, upload_url, max_depth)
    if squash_image:
        data = convert_image_fields(data, max_depth)
    return data, meta
