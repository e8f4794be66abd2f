# app/services/template_engine.py
# Motor de plantillas {{...}} para content / className / styles de los slots.
#
# Gramática cerrada (nunca se evalúa código):
#   {{a.b.c}}  {{a.0.b}}  {{a[0].b}}  {{this}}  {{@index}}  {{../x}}
#   {{#each coll}}...{{else}}...{{/each}}   (this, @index, @first, @last, @key)
#   {{#if cond}}...{{else}}...{{/if}}       cond = path | literal | (helper a b) | a OP b
#   {{#unless cond}}...{{else}}...{{/unless}}
#   {{t "key"}}  traducción desde settings.ui_translations
#   {{! comentario}}
# Helpers permitidos: eq, ne, gt, lt. Operadores inline: == != > < >= <=
# Bloques abiertos más allá de MAX_DEPTH quedan como texto literal (con su cierre).
from __future__ import annotations

import json
import logging
import operator
import re
from dataclasses import dataclass, field
from functools import lru_cache
from typing import Any, Dict, List, Mapping, Optional, Sequence, Tuple, Union

from app.services.errors import TemplateResolutionWarning

logger = logging.getLogger(__name__)

MAX_DEPTH = 10

_TAG_RE = re.compile(r"\{\{\{(.*?)\}\}\}|\{\{(.*?)\}\}", re.DOTALL)
_TRANSLATE_RE = re.compile(r"""^t\s+(['"])(.+?)\1$""")
_ARG_RE = re.compile(r""""([^"]*)"|'([^']*)'|(\S+)""")
_BRACKET_RE = re.compile(r"\[(\d+)\]")
_NUMBER_RE = re.compile(r"^-?\d+(\.\d+)?$")
# a OP b: cada operando es un string entre comillas, un literal o un path
_OPERAND = r"""(?:"[^"]*"|'[^']*'|[^\s<>=!]+)"""
_OP_RE = re.compile(rf"^({_OPERAND})\s*(>=|<=|==|!=|>|<)\s*({_OPERAND})$")

_BLOCKS = {"each", "if", "unless"}

_MISSING = object()


class _Literal:
    __slots__ = ("value",)

    def __init__(self, value: Any) -> None:
        self.value = value


# ===================== AST =====================

@dataclass
class _Text:
    value: str


@dataclass
class _Var:
    path: str


@dataclass
class _Translate:
    key: str


@dataclass
class _Block:
    kind: str               # each | if | unless
    arg: str
    source: str             # texto original del tag de apertura
    body: List[Any] = field(default_factory=list)
    inverse: List[Any] = field(default_factory=list)
    has_else: bool = False


Node = Union[_Text, _Var, _Translate, _Block]


# ===================== Parser =====================

def _parse(template: str) -> Tuple[List[Node], List[str]]:
    problems: List[str] = []
    root: List[Node] = []
    stack: List[Tuple[Optional[_Block], List[Node]]] = [(None, root)]
    # helpers abiertos por encima de MAX_DEPTH: su else y su cierre también son literales
    rejected: List[str] = []
    pos = 0

    for m in _TAG_RE.finditer(template):
        block, out = stack[-1]
        if m.start() > pos:
            out.append(_Text(template[pos:m.start()]))
        pos = m.end()

        source = m.group(0)
        inner = (m.group(1) if m.group(1) is not None else m.group(2)).strip()

        if inner.startswith("!"):
            continue

        if inner.startswith("#"):
            name, _, arg = inner[1:].partition(" ")
            if name not in _BLOCKS:
                problems.append(f"unknown block helper '{name}'")
                out.append(_Text(source))
                continue
            if len(stack) > MAX_DEPTH:
                if not rejected:
                    problems.append(f"nesting deeper than {MAX_DEPTH} levels")
                rejected.append(name)
                out.append(_Text(source))
                continue
            node = _Block(kind=name, arg=arg.strip(), source=source)
            out.append(node)
            stack.append((node, node.body))
            continue

        if inner.startswith("/"):
            name = inner[1:].strip()
            if rejected:
                if rejected[-1] == name:
                    rejected.pop()
                else:
                    problems.append(f"unexpected closing tag '{source}'")
                out.append(_Text(source))
                continue
            if block is not None and block.kind == name:
                stack.pop()
                continue
            problems.append(f"unexpected closing tag '{source}'")
            out.append(_Text(source))
            continue

        if inner == "else":
            if rejected:
                out.append(_Text(source))
                continue
            if block is not None and not block.has_else:
                block.has_else = True
                stack[-1] = (block, block.inverse)
                continue
            problems.append("'{{else}}' outside of a block")
            out.append(_Text(source))
            continue

        tm = _TRANSLATE_RE.match(inner)
        if tm:
            stack[-1][1].append(_Translate(tm.group(2)))
            continue

        out.append(_Var(inner))

    if pos < len(template):
        stack[-1][1].append(_Text(template[pos:]))

    # Bloques sin cerrar: se degradan a texto literal
    while len(stack) > 1:
        block, _ = stack.pop()
        problems.append(f"unclosed block '{block.source}'")
        parent_out = stack[-1][1]
        parent_out.pop()
        parent_out.append(_Text(block.source))
        parent_out.extend(block.body)
        if block.has_else:
            parent_out.append(_Text("{{else}}"))
            parent_out.extend(block.inverse)

    return root, problems


@lru_cache(maxsize=1024)
def _compile(template: str) -> Tuple[List[Node], Tuple[str, ...]]:
    nodes, problems = _parse(template)
    return nodes, tuple(problems)


# ===================== Scopes & lookup =====================

@dataclass
class _Scope:
    value: Any
    data: Dict[str, Any] = field(default_factory=dict)
    parent: Optional["_Scope"] = None

    def root(self) -> "_Scope":
        s = self
        while s.parent is not None:
            s = s.parent
        return s


def _split_path(path: str) -> List[str]:
    # "images[0].url" -> ["images", "0", "url"]
    return [p for p in _BRACKET_RE.sub(r".\1", path).split(".") if p]


def _step(current: Any, key: str) -> Any:
    if isinstance(current, Mapping):
        return current.get(key, _MISSING) if key in current else _MISSING
    if isinstance(current, (list, tuple)) and key.isdigit():
        i = int(key)
        return current[i] if i < len(current) else _MISSING
    return _MISSING


def _traverse(obj: Any, parts: Sequence[str]) -> Any:
    current = obj
    for key in parts:
        if current is None:
            return _MISSING
        current = _step(current, key)
        if current is _MISSING:
            return _MISSING
    return current


def _lookup(path: str, scope: _Scope) -> Any:
    path = path.strip()
    explicit_parent = False
    while path.startswith("../"):
        explicit_parent = True
        path = path[3:]
        if scope.parent is None:
            return _MISSING
        scope = scope.parent

    if not path:
        return _MISSING

    if path.startswith("@"):
        name = path[1:]
        s: Optional[_Scope] = scope
        while s is not None:
            if name in s.data:
                return s.data[name]
            s = s.parent
        return _MISSING

    if path in ("this", "."):
        return scope.value
    if path.startswith("this.") or path.startswith("this["):
        return _traverse(scope.value, _split_path(path[4:]))

    parts = _split_path(path)
    if not parts:
        return _MISSING

    # El ítem del loop tiene prioridad; luego se sube hasta el contexto raíz
    s = scope
    while s is not None:
        if isinstance(s.value, Mapping) and parts[0] in s.value:
            return _traverse(s.value, parts)
        if explicit_parent:
            break
        s = s.parent
    return _MISSING


def get_nested_value(path: str, context: Mapping[str, Any], default: Any = None) -> Any:
    """Lookup por path con la misma semántica que {{path}} (sin warnings)."""
    value = _lookup(path, _Scope(context if isinstance(context, Mapping) else {}))
    return default if value is _MISSING else value


# ===================== Valores =====================

def _stringify(value: Any) -> str:
    if value is None or value is _MISSING:
        return ""
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, int):
        return str(value)
    if isinstance(value, float):
        return str(int(value)) if value.is_integer() else repr(value)
    if isinstance(value, str):
        return value
    if isinstance(value, (list, tuple)):
        return ", ".join(_stringify(v) for v in value)
    if isinstance(value, Mapping):
        return json.dumps(value, sort_keys=True, separators=(",", ":"), default=str)
    return str(value)


def _truthy(value: Any) -> bool:
    if value is _MISSING or value is None:
        return False
    if isinstance(value, (list, tuple, str)):
        return len(value) > 0
    if isinstance(value, bool):
        return value
    if isinstance(value, (int, float)):
        return value != 0
    return True


def _literal_or_none(token: str) -> Optional[_Literal]:
    if token == "true":
        return _Literal(True)
    if token == "false":
        return _Literal(False)
    if token in ("null", "undefined"):
        return _Literal(None)
    if _NUMBER_RE.match(token):
        return _Literal(float(token) if "." in token else int(token))
    return None


def _resolve_arg(m: "re.Match[str]", scope: _Scope, warn) -> Any:
    if m.group(1) is not None:
        return m.group(1)
    if m.group(2) is not None:
        return m.group(2)
    token = m.group(3)
    lit = _literal_or_none(token)
    if lit is not None:
        return lit.value
    value = _lookup(token, scope)
    if value is _MISSING:
        warn(f"unknown token '{token}'")
        return None
    return value


def _same(a: Any, b: Any) -> bool:
    if isinstance(a, bool) != isinstance(b, bool):
        return False
    return a == b


def _as_number(v: Any) -> Optional[float]:
    if isinstance(v, bool) or v is None:
        return None
    try:
        return float(v)
    except (TypeError, ValueError):
        return None


def _compare(helper: str, a: Any, b: Any) -> bool:
    if helper == "eq":
        return _same(a, b)
    if helper == "ne":
        return not _same(a, b)
    na, nb = _as_number(a), _as_number(b)
    if na is None or nb is None:
        return False
    return _NUMERIC[helper](na, nb)


_NUMERIC = {"gt": operator.gt, "lt": operator.lt, "ge": operator.ge, "le": operator.le}
_HELPERS = {"eq", "ne", "gt", "lt"}
_OPERATORS = {"==": "eq", "!=": "ne", ">": "gt", "<": "lt", ">=": "ge", "<=": "le"}


def _evaluate_condition(expr: str, scope: _Scope, warn) -> bool:
    expr = expr.strip()
    if expr.startswith("(") and expr.endswith(")"):
        args = list(_ARG_RE.finditer(expr[1:-1]))
        if not args or args[0].group(3) not in _HELPERS:
            warn(f"unsupported helper in '{expr}'")
            return False
        helper = args[0].group(3)
        if len(args) != 3:
            warn(f"helper '{helper}' expects two arguments")
            return False
        a = _resolve_arg(args[1], scope, warn)
        b = _resolve_arg(args[2], scope, warn)
        return _compare(helper, a, b)

    om = _OP_RE.match(expr)
    if om:
        a = _resolve_arg(_ARG_RE.fullmatch(om.group(1)), scope, warn)
        b = _resolve_arg(_ARG_RE.fullmatch(om.group(3)), scope, warn)
        return _compare(_OPERATORS[om.group(2)], a, b)

    lit = _literal_or_none(expr)
    if lit is not None:
        return _truthy(lit.value)
    if re.search(r"\s|[<>=!]", expr):
        warn(f"unsupported condition '{expr}'")
        return False
    # {{#if x}} sobre un path inexistente es simplemente falso
    return _truthy(_lookup(expr, scope))


def _humanize(key: str) -> str:
    return re.sub(r"\b\w", lambda m: m.group(0).upper(), key.replace("_", " "))


def _translate(key: str, scope: _Scope) -> str:
    root = scope.root().value
    lang = root.get("language") if isinstance(root, Mapping) else None
    translations = _traverse(root, ["settings", "ui_translations"])
    if not isinstance(translations, Mapping):
        translations = {}
    parts = _split_path(key)
    for candidate in (lang or "en", "en"):
        value = _traverse(translations.get(candidate), parts)
        if value is not _MISSING and value:
            return _stringify(value)
    return _humanize(key)


# ===================== Render =====================

def _render_nodes(nodes: Sequence[Node], scope: _Scope, warn, out: List[str]) -> None:
    for node in nodes:
        if isinstance(node, _Text):
            out.append(node.value)
        elif isinstance(node, _Var):
            value = _lookup(node.path, scope)
            if value is _MISSING:
                warn(f"unknown token '{node.path}'")
                continue
            out.append(_stringify(value))
        elif isinstance(node, _Translate):
            out.append(_translate(node.key, scope))
        elif node.kind == "each":
            _render_each(node, scope, warn, out)
        else:
            ok = _evaluate_condition(node.arg, scope, warn)
            if node.kind == "unless":
                ok = not ok
            _render_nodes(node.body if ok else node.inverse, scope, warn, out)


def _render_each(node: _Block, scope: _Scope, warn, out: List[str]) -> None:
    collection = _lookup(node.arg, scope)
    if collection is _MISSING:
        warn(f"unknown collection '{node.arg}'")
        collection = None

    if isinstance(collection, Mapping):
        pairs = list(collection.items())
    elif isinstance(collection, (list, tuple)):
        pairs = [(None, item) for item in collection]
    else:
        pairs = []

    if not pairs:
        _render_nodes(node.inverse, scope, warn, out)
        return

    last = len(pairs) - 1
    for i, (key, item) in enumerate(pairs):
        data = {"index": i, "first": i == 0, "last": i == last}
        if key is not None:
            data["key"] = key
        _render_nodes(node.body, _Scope(value=item, data=data, parent=scope), warn, out)


class _WarningSink:
    def __init__(self, sink: Optional[List[TemplateResolutionWarning]]) -> None:
        self._sink = sink

    def __call__(self, message: str) -> None:
        logger.warning("TemplateResolutionWarning: %s", message)
        if self._sink is not None:
            self._sink.append(TemplateResolutionWarning(message))


def process_variables(
    template: Any,
    context: Optional[Mapping[str, Any]],
    warnings: Optional[List[TemplateResolutionWarning]] = None,
) -> Any:
    """
    Resuelve los tokens {{...}} de `template` contra `context`.
    - Paths inexistentes -> "" (con TemplateResolutionWarning, nunca excepción).
    - Sin tokens -> se devuelve igual; si no es str, se devuelve tal cual.
    """
    if not isinstance(template, str) or "{{" not in template:
        return template

    warn = _WarningSink(warnings)
    nodes, problems = _compile(template)
    for p in problems:
        warn(p)

    out: List[str] = []
    _render_nodes(nodes, _Scope(context if isinstance(context, Mapping) else {}), warn, out)
    return "".join(out)


def process_styles(
    styles: Optional[Mapping[str, Any]],
    context: Optional[Mapping[str, Any]],
    warnings: Optional[List[TemplateResolutionWarning]] = None,
) -> Dict[str, Any]:
    """Aplica process_variables a cada valor string de un mapa CSS."""
    if not isinstance(styles, Mapping):
        return {}
    return {k: process_variables(v, context, warnings) for k, v in styles.items()}
