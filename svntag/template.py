"""
Tag name and comment templates for svntag.

Templates are literal text with ${...} references:

    ${env['BUILD_TAG']}     build environment variable
    ${sys['user.name']}     system property
    ${repoURL[-1]}          segment of the module's repository URL
    ${env.BUILD_TAG}        attribute shorthand for env/sys lookups

A backslash escapes a dollar sign (\\${ is literal text). Expressions are
parsed with the ast module and interpreted by a whitelist: variable
names, string/integer constants and indexing. Nothing else is evaluated.
"""

import ast
from typing import Any, List, Mapping, Optional, Sequence, Tuple, Union

from .domain.tagging import TemplateContext
from .exit_codes import TemplateError
from .urls import path_segments

ENV = 'env'
SYS = 'sys'
REPO_URL = 'repoURL'
VARIABLES = (ENV, SYS, REPO_URL)

# A sample URL used to preview templates outside of a build
SAMPLE_REPOSITORY_URL = (
    "http://svn.example.com/path1/path2/path3/path4/path5/"
    "path6/path7/path8/path9/path10"
)

# Parsed template: literal strings and (source, ast.Expression) pairs
Part = Union[str, Tuple[str, ast.Expression]]


def _split(template: str) -> List[Part]:
    """Split a template into literal text and parsed expressions."""
    parts: List[Part] = []
    literal: List[str] = []
    i = 0
    n = len(template)

    while i < n:
        ch = template[i]
        if ch == '\\' and i + 1 < n and template[i + 1] == '$':
            literal.append('$')
            i += 2
            continue
        if ch == '$' and i + 1 < n and template[i + 1] == '{':
            end = _find_closing_brace(template, i + 2)
            if end < 0:
                raise TemplateError(f"Unterminated '${{' at position {i} in template: {template}")
            source = template[i + 2:end]
            if literal:
                parts.append(''.join(literal))
                literal = []
            parts.append((source, _parse_expression(source)))
            i = end + 1
            continue
        literal.append(ch)
        i += 1

    if literal:
        parts.append(''.join(literal))
    return parts


def _find_closing_brace(text: str, start: int) -> int:
    """Index of the '}' closing an expression, skipping quoted strings."""
    quote = None
    i = start
    while i < len(text):
        ch = text[i]
        if quote:
            if ch == '\\':
                i += 2
                continue
            if ch == quote:
                quote = None
        elif ch in ('"', "'"):
            quote = ch
        elif ch == '}':
            return i
        i += 1
    return -1


def _parse_expression(source: str) -> ast.Expression:
    if not source.strip():
        raise TemplateError("Empty expression '${}' in template")
    try:
        node = ast.parse(source.strip(), mode='eval')
    except SyntaxError as exc:
        raise TemplateError(f"Invalid expression syntax: ${{{source}}}") from exc
    _check_node(node.body, source)
    return node


def _check_node(node: ast.AST, source: str) -> None:
    """Reject anything other than names, constants and indexing."""
    if isinstance(node, ast.Name):
        if node.id not in VARIABLES:
            raise TemplateError(
                f"Unknown variable '{node.id}' in ${{{source}}} "
                f"(expected one of {', '.join(VARIABLES)})"
            )
        return
    if isinstance(node, ast.Constant):
        if isinstance(node.value, bool) or not isinstance(node.value, (str, int)):
            raise TemplateError(f"Only string and integer constants are allowed: ${{{source}}}")
        return
    if isinstance(node, ast.UnaryOp) and isinstance(node.op, ast.USub):
        if isinstance(node.operand, ast.Constant) and type(node.operand.value) is int:
            return
        raise TemplateError(f"Only integer constants can be negated: ${{{source}}}")
    if isinstance(node, ast.Subscript):
        if isinstance(node.slice, ast.Slice):
            raise TemplateError(f"Slices are not allowed: ${{{source}}}")
        _check_node(node.value, source)
        _check_node(node.slice, source)
        return
    if isinstance(node, ast.Attribute):
        if not (isinstance(node.value, ast.Name) and node.value.id in (ENV, SYS)):
            raise TemplateError(f"Attribute access is only allowed on env and sys: ${{{source}}}")
        return
    raise TemplateError(f"Expression node '{type(node).__name__}' is not allowed: ${{{source}}}")


class _Evaluator:
    """Interprets a checked expression tree against a TemplateContext."""

    def __init__(self, context: TemplateContext, source: str):
        self.context = context
        self.source = source

    def visit(self, node: ast.AST) -> Any:
        if isinstance(node, ast.Expression):
            return self.visit(node.body)
        if isinstance(node, ast.Name):
            return self._variable(node.id)
        if isinstance(node, ast.Constant):
            return node.value
        if isinstance(node, ast.UnaryOp):
            return -self.visit(node.operand)
        if isinstance(node, ast.Attribute):
            return self._index(self.visit(node.value), node.attr)
        if isinstance(node, ast.Subscript):
            return self._index(self.visit(node.value), self.visit(node.slice))
        raise TemplateError(f"Expression node '{type(node).__name__}' is not allowed: ${{{self.source}}}")

    def _variable(self, name: str) -> Any:
        if name == ENV:
            return self.context.environment
        if name == SYS:
            return self.context.system_properties
        return self.context.path_segments

    def _index(self, container: Any, key: Any) -> Any:
        if isinstance(container, Mapping):
            if not isinstance(key, str):
                raise TemplateError(f"Lookup key must be a string: ${{{self.source}}}")
            if key not in container:
                raise TemplateError(f"Undefined variable '{key}' in ${{{self.source}}}")
            return container[key]
        if isinstance(container, Sequence) and not isinstance(container, str):
            if not isinstance(key, int):
                raise TemplateError(f"{REPO_URL} index must be an integer: ${{{self.source}}}")
            try:
                return container[key]
            except IndexError as exc:
                raise TemplateError(
                    f"Index {key} out of range for {REPO_URL} "
                    f"({len(container)} segments): ${{{self.source}}}"
                ) from exc
        raise TemplateError(f"Value is not indexable: ${{{self.source}}}")


def _render(value: Any, source: str) -> str:
    if isinstance(value, Mapping):
        raise TemplateError(f"A single key must be looked up: ${{{source}}}")
    if isinstance(value, tuple):
        raise TemplateError(f"{REPO_URL} must be indexed: ${{{source}}}")
    return str(value)


def evaluate(template: str, context: TemplateContext) -> str:
    """
    Substitute every ${...} reference in template and trim the result.

    Raises:
        TemplateError: on invalid syntax or an unresolvable reference
    """
    if template is None:
        return ''

    pieces = []
    for part in _split(template):
        if isinstance(part, str):
            pieces.append(part)
            continue
        source, node = part
        value = _Evaluator(context, source).visit(node)
        pieces.append(_render(value, source))
    return ''.join(pieces).strip()


def check_template(template: str) -> List[str]:
    """
    Validate template syntax without resolving any reference.

    Returns:
        The expression sources found in the template

    Raises:
        TemplateError: if the template cannot be parsed
    """
    return [part[0] for part in _split(template or '') if not isinstance(part, str)]


def preview(template: str, environment: Optional[Mapping[str, str]] = None,
            system_properties: Optional[Mapping[str, str]] = None,
            repository_url: str = SAMPLE_REPOSITORY_URL) -> str:
    """Evaluate template against a sample repository URL."""
    context = TemplateContext(
        environment=environment or {},
        system_properties=system_properties or {},
        path_segments=tuple(path_segments(repository_url)),
    )
    return evaluate(template, context)
