"""Method catalog: importing this module registers every builder."""

# Import all method modules to trigger registration
import pipeline.methods.cleaning  # noqa: F401
import pipeline.methods.feature_engineering  # noqa: F401
import pipeline.methods.reduction  # noqa: F401
import pipeline.methods.transformation  # noqa: F401
from pipeline.common.base import METHOD_REGISTRY, get_builder


def list_methods() -> list[dict[str, str]]:
    return [
        {"method": cls.method, "technique": cls.technique, "description": cls.description}
        for cls in sorted(METHOD_REGISTRY.values(), key=lambda c: (c.technique, c.method))
    ]


__all__ = ["METHOD_REGISTRY", "get_builder", "list_methods"]
