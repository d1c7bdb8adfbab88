"""Recipe and image lookups served to clients.

``RecipeBook.lookup`` maps free-form ingredient text to a recipe by
case-sensitive keyword search. ``ImageShelf.image_for`` maps a recipe to
an image stored for it on disk, re-encoded as PNG whatever its source
format. Both are plain callables from the server's point of view.
"""

from __future__ import annotations

import io
import re
from collections.abc import Mapping
from pathlib import Path

from PIL import Image, UnidentifiedImageError

from pantry.logger import get_logger

logger = get_logger("catalog")

NO_RECIPE = "No recipe found for the given products."

DEFAULT_RECIPES: dict[str, str] = {
    "tomato": "Tomato Salad: tomatoes, olive oil, salt.",
}

PNG_SIGNATURE = b"\x89PNG\r\n\x1a\n"

IMAGE_EXTENSIONS = (".png", ".jpg", ".jpeg", ".gif", ".bmp", ".webp")

_PNG_MODES = frozenset({"1", "L", "LA", "I", "P", "RGB", "RGBA"})


class RecipeBook:
    """Ordered keyword table; the first keyword found in the text wins.

    Examples
    --------
    >>> book = RecipeBook()
    >>> book.lookup("I have tomato and bread")
    'Tomato Salad: tomatoes, olive oil, salt.'
    >>> book.lookup("kale")
    'No recipe found for the given products.'
    """

    def __init__(
        self,
        recipes: Mapping[str, str] | None = None,
        *,
        fallback: str = NO_RECIPE,
    ) -> None:
        self._recipes: dict[str, str] = dict(DEFAULT_RECIPES if recipes is None else recipes)
        self.fallback = fallback

    def lookup(self, text: str) -> str:
        for keyword, recipe in self._recipes.items():
            if keyword in text:
                return recipe
        return self.fallback

    def add(self, keyword: str, recipe: str) -> None:
        if not keyword:
            raise ValueError("keyword must not be empty")
        self._recipes[keyword] = recipe

    @property
    def keywords(self) -> list[str]:
        return list(self._recipes)

    __call__ = lookup


def recipe_title(recipe: str) -> str:
    """Return the part of *recipe* before the first colon, stripped."""
    return recipe.split(":", 1)[0].strip()


def slugify(title: str) -> str:
    """``"Tomato Salad"`` -> ``"tomato_salad"``."""
    return re.sub(r"[^a-z0-9]+", "_", title.lower()).strip("_")


class ImageShelf:
    """Recipe images on disk, one per recipe title, plus a default.

    The image for a recipe is ``<directory>/<slug>.<ext>`` where the title
    slugs to ``<slug>`` and ``<ext>`` is any of ``IMAGE_EXTENSIONS``, tried
    in order; otherwise the default image; otherwise nothing. Whatever the
    file format, the bytes served are PNG.

    Parameters
    ----------
    directory : Path | None
        Image folder. ``None`` disables images entirely.
    default : str | None
        Fallback image. A bare stem (``"default"``) is looked up with every
        extension, a file name (``"plate.jpg"``) is used as is. ``None``
        disables the fallback.

    Examples
    --------
    >>> shelf = ImageShelf(Path("images"))
    >>> shelf.path_for("Tomato Salad: tomatoes, olive oil, salt.")
    PosixPath('images/tomato_salad.jpg')
    """

    def __init__(self, directory: Path | None, *, default: str | None = "default") -> None:
        self.directory = directory
        self.default = default

    def path_for(self, recipe: str) -> Path | None:
        if self.directory is None:
            return None
        slug = slugify(recipe_title(recipe))
        if slug:
            found = self._find(slug)
            if found is not None:
                return found
        if self.default is not None:
            return self._find(self.default)
        return None

    def _find(self, name: str) -> Path | None:
        assert self.directory is not None
        if Path(name).suffix:
            exact = self.directory / name
            return exact if exact.is_file() else None
        for ext in IMAGE_EXTENSIONS:
            candidate = self.directory / f"{name}{ext}"
            if candidate.is_file():
                return candidate
        return None

    def image_for(self, recipe: str) -> bytes | None:
        path = self.path_for(recipe)
        if path is None:
            return None
        try:
            return encode_png(path)
        except UnidentifiedImageError:
            logger.warning("Ignoring unreadable image", extra={"fields": {"path": str(path)}})
            return None

    __call__ = image_for


def encode_png(path: Path) -> bytes:
    """Load the image at *path* in any format Pillow reads and return PNG bytes."""
    with Image.open(path) as image:
        if image.mode not in _PNG_MODES:
            image = image.convert("RGBA")
        buffer = io.BytesIO()
        image.save(buffer, format="PNG")
    return buffer.getvalue()


def is_image(payload: bytes) -> bool:
    return payload.startswith(PNG_SIGNATURE)
