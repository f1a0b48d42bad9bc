"""
Defines the syntax tree for the Kaleidoscope (K) language.

Classes:
    ASTNode:
        An expression node. The `kind` tag selects the variant:

        ============  ======================  =============================
        kind          value                   children
        ============  ======================  =============================
        "number"      float literal           ()
        "identifier"  variable name           ()
        "binary"      operator character      (lhs, rhs)
        "call"        callee name             arguments, in order
        "if"          None                    (cond, then_branch, else_branch)
        ============  ======================  =============================

    PrototypeNode:
        A function name plus its ordered parameter names, without a body.

    FunctionNode:
        A prototype together with its body expression.

    ASTDict:
        TypedDict representation used when serializing expression nodes.

Nodes are never mutated after construction; children are stored as tuples.
"""

from typing import Any, TypedDict

EXPRESSION_KINDS = ("number", "identifier", "binary", "call", "if")


class ASTDict(TypedDict, total=False):
    """
    TypedDict representation of an ASTNode used for serialization.

    Fields:
        kind (str): The expression variant (e.g., "binary", "call", "if").
        value (Any): Literal value, name, or operator character.
        line (int): Line number in the source code where the node originates.
        col (int): Column number in the source code where the node originates.
        children (List[ASTDict]): Sub-expressions in order.
    """

    kind: str
    value: Any
    line: int
    col: int
    children: list["ASTDict"]


class ASTNode:
    """
    Represents an expression in the K syntax tree.

    Args:
        kind (str): One of EXPRESSION_KINDS.
        value (Any, optional): Literal value, name, or operator character.
        children (list[ASTNode] | tuple[ASTNode, ...], optional): Sub-expressions, owned by this node.
        line (int): Source line number (default is 0).
        col (int): Source column number (default is 0).

    Raises:
        ValueError: If `kind` is not a known expression variant.
    """

    __slots__ = ("kind", "value", "children", "line", "col")

    def __init__(
        self,
        kind: str,
        value: Any = None,
        children: list["ASTNode"] | tuple["ASTNode", ...] | None = None,
        line: int = 0,
        col: int = 0,
    ):
        if kind not in EXPRESSION_KINDS:
            raise ValueError(f"Unknown expression kind: {kind!r}")
        self.kind = kind
        self.value = value
        self.children: tuple["ASTNode", ...] = tuple(children or ())
        self.line = line
        self.col = col

    @classmethod
    def number(cls, value: float, line: int = 0, col: int = 0) -> "ASTNode":
        return cls("number", float(value), line=line, col=col)

    @classmethod
    def identifier(cls, name: str, line: int = 0, col: int = 0) -> "ASTNode":
        return cls("identifier", name, line=line, col=col)

    @classmethod
    def binary(
        cls, op: str, lhs: "ASTNode", rhs: "ASTNode", line: int = 0, col: int = 0
    ) -> "ASTNode":
        return cls("binary", op, (lhs, rhs), line=line, col=col)

    @classmethod
    def call(
        cls, callee: str, args: list["ASTNode"], line: int = 0, col: int = 0
    ) -> "ASTNode":
        return cls("call", callee, args, line=line, col=col)

    @classmethod
    def if_(
        cls,
        cond: "ASTNode",
        then_branch: "ASTNode",
        else_branch: "ASTNode",
        line: int = 0,
        col: int = 0,
    ) -> "ASTNode":
        return cls("if", None, (cond, then_branch, else_branch), line=line, col=col)

    def _key(self) -> tuple[Any, ...]:
        return (self.kind, self.value, self.children, self.line, self.col)

    def __repr__(self) -> str:
        fields = [self.kind]
        if self.value is not None:
            fields.append(f"value={self.value!r}")
        if self.children:
            shown = [repr(child) for child in self.children[:3]]
            if len(self.children) > 3:
                shown.append("...")
            fields.append("children=[" + ", ".join(shown) + "]")
        return "ASTNode(" + ", ".join(fields) + ")"

    def __eq__(self, other: Any) -> bool:
        return isinstance(other, ASTNode) and self._key() == other._key()

    def __hash__(self) -> int:
        return hash(self._key()[:3])

    def to_dict(self) -> ASTDict:
        data: ASTDict = {"kind": self.kind, "value": self.value}
        data["line"], data["col"] = self.line, self.col
        data["children"] = [child.to_dict() for child in self.children]
        return data


class PrototypeNode:
    """A function signature: name and ordered parameter names.

    Parameter names are not checked for uniqueness.
    """

    __slots__ = ("name", "params", "line", "col")

    def __init__(self, name: str, params: list[str] | tuple[str, ...] = (), line: int = 0, col: int = 0):
        self.name = name
        self.params: tuple[str, ...] = tuple(params)
        self.line = line
        self.col = col

    @property
    def is_anonymous(self) -> bool:
        return self.name == ""

    def __repr__(self) -> str:
        return f"PrototypeNode({self.name!r}, params={list(self.params)!r})"

    def __eq__(self, other: Any) -> bool:
        return (
            isinstance(other, PrototypeNode)
            and self.name == other.name
            and self.params == other.params
        )

    def __hash__(self) -> int:
        return hash((self.name, self.params))


class FunctionNode:
    """A function definition. Owns its prototype and body."""

    __slots__ = ("prototype", "body")

    def __init__(self, prototype: PrototypeNode, body: ASTNode):
        self.prototype = prototype
        self.body = body

    def __repr__(self) -> str:
        return f"FunctionNode({self.prototype!r}, body={self.body!r})"

    def __eq__(self, other: Any) -> bool:
        return (
            isinstance(other, FunctionNode)
            and self.prototype == other.prototype
            and self.body == other.body
        )

    def __hash__(self) -> int:
        return hash((self.prototype, self.body))


__all__ = ["ASTDict", "ASTNode", "EXPRESSION_KINDS", "FunctionNode", "PrototypeNode"]
