"""Tree-sitter structural parsing for Java sources.

Produces a ``StructuralUnit`` per file: package, primary class, and every
method-like member with a formatting-independent signature and a token
fingerprint.  Members of nested and secondary top-level types are flattened
into the primary class with a qualifying prefix; local and anonymous classes
stay part of the method that declares them.
"""

from __future__ import annotations

import hashlib
import re
import threading
from dataclasses import dataclass, field, replace
from pathlib import PurePosixPath
from typing import Any

import structlog
import tree_sitter
import tree_sitter_java

from diffcov.config.models import SignatureConfig
from diffcov.parsing.models import ParsedMethod, ParseFailure, StructuralUnit, qualify

log = structlog.get_logger(__name__)

TYPE_DECLARATIONS = frozenset(
    {
        "class_declaration",
        "interface_declaration",
        "enum_declaration",
        "record_declaration",
        "annotation_type_declaration",
    }
)

_METHOD_DECLARATIONS = frozenset(
    {
        "method_declaration",
        "constructor_declaration",
        "compact_constructor_declaration",
    }
)

# Initializer blocks compile into <clinit> and into every <init>.
_INITIALIZERS = {"static_initializer": "<clinit>", "block": "<init>"}

_COMMENTS = frozenset({"line_comment", "block_comment"})

_SPREAD_SKIP = frozenset({"modifiers", "variable_declarator", "marker_annotation", "annotation"})

_ANNOTATION_RE = re.compile(r"@[\w$.]+(\s*\([^()]*\))?")
_QUALIFIED_RE = re.compile(r"(?:[A-Za-z_$][\w$]*\.)+([A-Za-z_$][\w$]*)")

_language: tree_sitter.Language | None = None
_language_lock = threading.Lock()


def _java_language() -> tree_sitter.Language:
    global _language
    with _language_lock:
        if _language is None:
            _language = tree_sitter.Language(tree_sitter_java.language())
        return _language


# =============================================================================
# Type and path normalization
# =============================================================================


def normalize_type(text: str, *, erase_generics: bool = True) -> str:
    """Normalize a Java type as written into its signature form.

    Annotations and whitespace are dropped and package qualifiers stripped
    (``java.util.List<String>`` -> ``List``, or ``List<String>`` when
    generics are kept).
    """
    text = _ANNOTATION_RE.sub("", text)
    text = "".join(text.split())
    if erase_generics:
        text = _strip_generics(text)
    return _QUALIFIED_RE.sub(r"\1", text)


def _strip_generics(text: str) -> str:
    out: list[str] = []
    depth = 0
    for ch in text:
        if ch == "<":
            depth += 1
        elif ch == ">":
            depth = max(depth - 1, 0)
        elif depth == 0:
            out.append(ch)
    return "".join(out)


def package_from_path(path: str, source_roots: list[str] | tuple[str, ...]) -> str:
    """Derive a package from the path below the first matching source root."""
    posix = "/" + path.replace("\\", "/").lstrip("/")
    for root in source_roots:
        marker = "/" + root.strip("/") + "/"
        idx = posix.find(marker)
        if idx == -1:
            continue
        relative = posix[idx + len(marker) :]
        return relative.rpartition("/")[0].replace("/", ".")
    return ""


def qualified_name_from_path(path: str, source_roots: list[str] | tuple[str, ...]) -> str:
    return qualify(package_from_path(path, source_roots), PurePosixPath(path).stem)


# =============================================================================
# Parser
# =============================================================================


@dataclass
class JavaParser:
    """Structural parser for Java source files.

    Usage::

        parser = JavaParser()
        unit = parser.parse(text, "src/main/java/pkg/Foo.java")
        if isinstance(unit, ParseFailure):
            ...

    Safe to share between threads: each thread gets its own tree-sitter
    parser.
    """

    signature: SignatureConfig = field(default_factory=SignatureConfig)
    source_roots: tuple[str, ...] = ("src/main/java/", "src/test/java/", "src/")
    _local: threading.local = field(default_factory=threading.local, init=False, repr=False)

    def _parser(self) -> tree_sitter.Parser:
        parser: tree_sitter.Parser | None = getattr(self._local, "parser", None)
        if parser is None:
            parser = tree_sitter.Parser(_java_language())
            self._local.parser = parser
        return parser

    def parse(self, text: str, path: str) -> StructuralUnit | ParseFailure:
        """Parse one file's text.

        Args:
            text: Full source text.
            path: Repository-relative path, used for the package fallback
                  and to pick the primary type.

        Returns:
            StructuralUnit, or ParseFailure if the source has syntax errors.
        """
        source = text.encode("utf-8")
        tree = self._parser().parse(source)
        root = tree.root_node

        if root.has_error:
            log.debug("java_parse_failed", path=path, reason="syntax_error")
            return ParseFailure(
                path=path,
                reason=f"syntax error near line {_first_error_line(root)}",
                qualified_name_hint=qualified_name_from_path(path, self.source_roots),
            )

        package = _declared_package(root)
        if package is None:
            package = package_from_path(path, self.source_roots)

        types = [child for child in root.named_children if child.type in TYPE_DECLARATIONS]
        line_count = len(text.splitlines())
        content_id = hashlib.sha256(source).hexdigest()[:16]

        if not types:
            return StructuralUnit(
                path=path,
                package=package,
                class_name=None,
                methods=(),
                line_count=line_count,
                content_id=content_id,
            )

        stem = PurePosixPath(path).stem
        primary = next((t for t in types if _node_name(t) == stem), types[0])

        collected: list[ParsedMethod] = []
        self._collect_type(primary, "", collected)
        for other in types:
            if other is not primary:
                self._collect_type(other, f"{_node_name(other)}.", collected)

        return StructuralUnit(
            path=path,
            package=package,
            class_name=_node_name(primary),
            methods=_dedupe_signatures(collected),
            line_count=line_count,
            content_id=content_id,
        )

    # ---- Member walking ----

    def _collect_type(self, type_node: Any, prefix: str, out: list[ParsedMethod]) -> None:
        body = type_node.child_by_field_name("body")
        if body is None:
            return

        record_params: tuple[str, ...] = ()
        if type_node.type == "record_declaration":
            record_params = self._parameter_types(type_node.child_by_field_name("parameters"))

        for member in _body_members(body):
            if member.type in _METHOD_DECLARATIONS:
                out.append(self._method(member, prefix, record_params))
            elif member.type in _INITIALIZERS:
                out.append(self._initializer(member, prefix + _INITIALIZERS[member.type]))
            elif member.type in TYPE_DECLARATIONS or member.type == "enum_constant":
                # constant bodies ("A { ... }") compile to anonymous subclasses
                self._collect_type(member, f"{prefix}{_node_name(member)}.", out)

    def _initializer(self, node: Any, name: str) -> ParsedMethod:
        return ParsedMethod(
            name=name,
            parameter_types=(),
            signature=f"{name}()",
            start_line=node.start_point[0] + 1,
            end_line=node.end_point[0] + 1,
            fingerprint=fingerprint(node),
        )

    def _method(self, node: Any, prefix: str, record_params: tuple[str, ...]) -> ParsedMethod:
        name = prefix + _node_name(node)

        if node.type == "compact_constructor_declaration":
            params = record_params
        else:
            params = self._parameter_types(node.child_by_field_name("parameters"))

        return_type: str | None = None
        type_node = node.child_by_field_name("type")
        if type_node is not None and type_node.text:
            return_type = normalize_type(
                type_node.text.decode("utf-8"),
                erase_generics=self.signature.erase_generics,
            )

        signature = f"{name}({','.join(params)})"
        if self.signature.include_return_type and return_type is not None:
            signature = f"{signature}:{return_type}"

        return ParsedMethod(
            name=name,
            parameter_types=params,
            signature=signature,
            start_line=node.start_point[0] + 1,
            end_line=node.end_point[0] + 1,
            fingerprint=fingerprint(node),
            return_type=return_type,
        )

    def _parameter_types(self, params_node: Any) -> tuple[str, ...]:
        if params_node is None:
            return ()
        erase = self.signature.erase_generics
        types: list[str] = []
        for param in params_node.named_children:
            if param.type == "formal_parameter":
                type_node = param.child_by_field_name("type")
                text = type_node.text.decode("utf-8") if type_node and type_node.text else ""
                dims = param.child_by_field_name("dimensions")
                if dims is not None and dims.text:
                    text += dims.text.decode("utf-8")
                types.append(normalize_type(text, erase_generics=erase))
            elif param.type == "spread_parameter":
                type_node = next(
                    (c for c in param.named_children if c.type not in _SPREAD_SKIP), None
                )
                text = type_node.text.decode("utf-8") if type_node and type_node.text else ""
                types.append(normalize_type(text, erase_generics=erase) + "[]")
            # receiver_parameter ("Foo this") is not part of the identity
        return tuple(types)


# =============================================================================
# Helpers
# =============================================================================


def fingerprint(node: Any) -> str:
    """Hash of the node's token stream with comments and whitespace dropped."""
    tokens: list[bytes] = []
    stack = [node]
    while stack:
        current = stack.pop()
        if current.type in _COMMENTS:
            continue
        if current.child_count == 0:
            if current.text:
                tokens.append(current.text)
            continue
        stack.extend(reversed(current.children))
    return hashlib.sha256(b" ".join(tokens)).hexdigest()[:16]


def _declared_package(root: Any) -> str | None:
    for child in root.named_children:
        if child.type != "package_declaration":
            continue
        for part in child.named_children:
            if part.type in ("scoped_identifier", "identifier") and part.text:
                return "".join(part.text.decode("utf-8").split())
    return None


def _node_name(node: Any) -> str:
    name = node.child_by_field_name("name")
    if name is None or not name.text:
        return "<anonymous>"
    return str(name.text.decode("utf-8"))


def _body_members(body: Any) -> list[Any]:
    """Members of a class/interface/enum/record body, flattening enum bodies."""
    members: list[Any] = []
    for child in body.named_children:
        if child.type == "enum_body_declarations":
            members.extend(child.named_children)
        else:
            members.append(child)
    return members


def _dedupe_signatures(methods: list[ParsedMethod]) -> tuple[ParsedMethod, ...]:
    """Suffix repeated signatures (#2, #3) so every key stays unique."""
    seen: dict[str, int] = {}
    result: list[ParsedMethod] = []
    for method in methods:
        count = seen.get(method.signature, 0) + 1
        seen[method.signature] = count
        if count > 1:
            method = replace(method, signature=f"{method.signature}#{count}")
        result.append(method)
    return tuple(result)


def _first_error_line(root: Any) -> int:
    stack = [root]
    while stack:
        node = stack.pop()
        if node.type == "ERROR" or node.is_missing:
            return int(node.start_point[0]) + 1
        if node.has_error:
            stack.extend(reversed(node.children))
    return 0
