"""Container image resolution."""

from __future__ import annotations

from .. import config


def combine_image_tag(image: str, tag: str) -> str:
    """Join an image and a tag, using a digest separator for sha256 tags."""
    if not tag:
        return image
    if tag.startswith("sha256:"):
        return f"{image}@{tag}"
    return f"{image}:{tag}"


def resolve_image(
    component: str,
    spec_image: str | None,
    spec_version: str | None,
    default_image: str,
    default_version: str,
) -> str:
    """Resolve the container image for a component.

    The environment override is only honoured when the instance sets neither
    an image nor a version; otherwise the instance values are combined with the
    defaults filling any gap.

    Args:
        component: Key into config.IMAGE_ENV_VARS
        spec_image: Image from the instance spec
        spec_version: Version or digest from the instance spec
        default_image: Image used when the instance sets none
        default_version: Version used when the instance sets none

    Returns:
        Fully qualified image reference
    """
    if not spec_image and not spec_version:
        override = config.image_override(component)
        if override:
            return override
    return combine_image_tag(spec_image or default_image, spec_version or default_version)
