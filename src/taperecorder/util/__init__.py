from .canonical_json import canonical_dumps, canonicalize_json, to_json_value

__all__ = ["canonical_dumps", "canonicalize_json", "to_json_value"]
