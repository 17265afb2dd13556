from __future__ import annotations

import json
from pathlib import Path
from typing import Any, Optional

import yaml

from eager_macros.core.errors import RegistryError, TokenLoadError
from eager_macros.core.io.lex_tokens import parse_tokens
from eager_macros.core.model import Token
from eager_macros.core.rules.registry import ExpanderDecl, Registry, RuleDecl, declare_expanders


_RESERVED_KEYS = {"name", "rules", "eager"}


def load_registry_document(path: str) -> dict[str, Any]:
    """Load a YAML/JSON registry file.

    Returns a dict with keys: sentinel (may be None), expanders.
    Does not coerce types; ``declarations_from_document`` owns shape checking.
    """

    p = Path(path)
    if not p.exists():
        raise RegistryError(code="E_FILE_NOT_FOUND", message="file does not exist", file=str(p))

    suffix = p.suffix.lower()
    try:
        raw_text = p.read_text(encoding="utf-8")
    except Exception as e:  # pragma: no cover
        raise RegistryError(code="E_FILE_READ", message=str(e), file=str(p)) from e

    try:
        if suffix in {".yaml", ".yml"}:
            data = yaml.safe_load(raw_text)
        elif suffix == ".json":
            data = json.loads(raw_text)
        else:
            raise RegistryError(
                code="E_UNSUPPORTED_FORMAT",
                message="supported formats are .yaml/.yml and .json",
                file=str(p),
            )
    except RegistryError:
        raise
    except Exception as e:
        code = "E_YAML_PARSE" if suffix in {".yaml", ".yml"} else "E_JSON_PARSE"
        raise RegistryError(code=code, message=str(e), file=str(p)) from e

    if not isinstance(data, dict):
        raise RegistryError(
            code="E_INVALID_TOP_LEVEL",
            message="top-level document must be a mapping/object",
            file=str(p),
        )

    return {
        "sentinel": data.get("sentinel"),
        "expanders": data.get("expanders"),
        "__file__": str(p),
    }


def declarations_from_document(doc: dict[str, Any]) -> list[ExpanderDecl]:
    file: Optional[str] = doc.get("__file__")
    expanders = doc.get("expanders")
    if not isinstance(expanders, list):
        raise RegistryError(
            code="E_REQUIRED_FIELD",
            message="expanders is required and must be an array",
            file=file,
            path="expanders",
        )

    decls: list[ExpanderDecl] = []
    for i, raw in enumerate(expanders):
        path = f"expanders[{i}]"
        if not isinstance(raw, dict):
            raise RegistryError(code="E_INVALID_TYPE", message="expander must be an object", file=file, path=path)

        name = raw.get("name")
        if not isinstance(name, str) or not name.strip():
            raise RegistryError(
                code="E_REQUIRED_FIELD",
                message="name is required and must be a non-empty string",
                file=file,
                path=f"{path}.name",
            )

        eager = raw.get("eager", True)
        if not isinstance(eager, bool):
            raise RegistryError(code="E_INVALID_TYPE", message="eager must be a boolean", file=file, path=f"{path}.eager")

        rules = raw.get("rules")
        if not isinstance(rules, list) or not rules:
            raise RegistryError(
                code="E_REQUIRED_FIELD",
                message="rules is required and must be a non-empty array",
                file=file,
                path=f"{path}.rules",
            )

        rule_decls: list[RuleDecl] = []
        for ri, rule in enumerate(rules):
            rule_path = f"{path}.rules[{ri}]"
            if not isinstance(rule, dict):
                raise RegistryError(code="E_INVALID_TYPE", message="rule must be an object", file=file, path=rule_path)
            pattern = _rule_side(rule, "pattern", file=file, path=rule_path)
            replacement = _rule_side(rule, "replacement", file=file, path=rule_path)
            rule_decls.append(RuleDecl(pattern=pattern, replacement=replacement))

        # Everything else (doc, attributes, ...) is opaque metadata.
        metadata = {k: v for k, v in raw.items() if k not in _RESERVED_KEYS}
        decls.append(ExpanderDecl(name=name.strip(), rules=rule_decls, metadata=metadata, eager=eager))

    return decls


def load_registry(path: str, *, default_sentinel: str = "eager_1") -> Registry:
    doc = load_registry_document(path)
    file = doc["__file__"]

    sentinel = doc.get("sentinel")
    if sentinel is None:
        sentinel = default_sentinel
    if not isinstance(sentinel, str):
        raise RegistryError(code="E_INVALID_TYPE", message="sentinel must be a string", file=file, path="sentinel")

    decls = declarations_from_document(doc)
    try:
        return declare_expanders(sentinel, decls)
    except RegistryError as e:
        if e.file:
            raise
        raise RegistryError(code=e.code, message=e.message, file=file, path=e.path) from e


def _rule_side(rule: dict[str, Any], key: str, *, file: Optional[str], path: str) -> tuple[Token, ...]:
    text = rule.get(key)
    if text is None:
        text = ""
    if not isinstance(text, (str, int, float)) or isinstance(text, bool):
        raise RegistryError(code="E_INVALID_TYPE", message=f"{key} must be a string", file=file, path=f"{path}.{key}")
    try:
        return tuple(parse_tokens(str(text), file=file))
    except TokenLoadError as e:
        raise RegistryError(code=e.code, message=e.message, file=file, path=f"{path}.{key}") from e
