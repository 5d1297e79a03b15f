import importlib

mod = "structuralize"
class LazyLoader:
    """
    Resolves the public structuralize names on first access, so that the
    command line does not import the rewriter before a command needs it.
    """
    def __init__(self, mappings):
        self._mappings = mappings

    def __getattr__(self, item):
        if item not in self._mappings:
            raise AttributeError(f"module {mod!r} has no attribute {item!r}")
        module_name, attr_name = self._mappings[item]
        return getattr(importlib.import_module(module_name), attr_name)

# Public names and the modules that define them
_mappings = {
    "StructuralSchemaRewriter": (f"{mod}.rewriter", "StructuralSchemaRewriter"),
    "rewrite_structural_schema": (f"{mod}.rewriter", "rewrite_structural_schema"),
    "convert_json_schema_to_structural_schema": (f"{mod}.rewriter", "convert_json_schema_to_structural_schema"),
    "convert_json_schema_to_structural_schema_files": (f"{mod}.rewriter", "convert_json_schema_to_structural_schema_files"),
    "StructuralSchemaError": (f"{mod}.common", "StructuralSchemaError"),
}

_lazy_loader = LazyLoader(_mappings)

def __getattr__(name):
    return getattr(_lazy_loader, name)
