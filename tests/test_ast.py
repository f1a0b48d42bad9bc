import hypothesis.strategies as st
import pytest
from hypothesis import given

from kaleido.kaleido_ast import ASTNode, FunctionNode, PrototypeNode


def test_astnode_repr() -> None:
    node = ASTNode.identifier("x")
    assert repr(node) == "ASTNode(identifier, value='x')"


def test_astnode_repr_truncates_children() -> None:
    node = ASTNode.call("f", [ASTNode.number(i) for i in range(5)])
    assert repr(node).endswith(", ...])")


def test_astnode_eq_equal() -> None:
    n1 = ASTNode.binary("+", ASTNode.number(1), ASTNode.identifier("x"))
    n2 = ASTNode.binary("+", ASTNode.number(1), ASTNode.identifier("x"))
    assert n1 == n2
    assert hash(n1) == hash(n2)


def test_astnode_eq_not_equal_kind() -> None:
    assert ASTNode.identifier("x") != ASTNode.call("x", [])


def test_astnode_eq_not_equal_children() -> None:
    n1 = ASTNode.call("f", [ASTNode.identifier("x")])
    n2 = ASTNode.call("f", [ASTNode.identifier("y")])
    assert n1 != n2


def test_astnode_eq_other_type() -> None:
    assert ASTNode.number(1) != 1.0


def test_unknown_kind_rejected() -> None:
    with pytest.raises(ValueError):
        ASTNode("assign", "x")


def test_children_are_immutable() -> None:
    args = [ASTNode.number(1)]
    node = ASTNode.call("f", args)
    args.append(ASTNode.number(2))
    assert len(node.children) == 1
    assert isinstance(node.children, tuple)


def test_if_node_layout() -> None:
    node = ASTNode.if_(ASTNode.identifier("c"), ASTNode.number(1), ASTNode.number(2))
    assert node.kind == "if"
    assert node.value is None
    assert [c.kind for c in node.children] == ["identifier", "number", "number"]


def test_astnode_to_dict() -> None:
    node = ASTNode.binary("*", ASTNode.number(2), ASTNode.identifier("x"), line=1, col=3)
    d = node.to_dict()
    assert d["kind"] == "binary"
    assert d["value"] == "*"
    assert (d["line"], d["col"]) == (1, 3)
    assert [c["kind"] for c in d["children"]] == ["number", "identifier"]


def test_prototype_and_function() -> None:
    proto = PrototypeNode("f", ["a", "b"])
    fn = FunctionNode(proto, ASTNode.identifier("a"))
    assert proto.params == ("a", "b")
    assert not proto.is_anonymous
    assert repr(proto) == "PrototypeNode('f', params=['a', 'b'])"
    assert fn == FunctionNode(PrototypeNode("f", ("a", "b")), ASTNode.identifier("a"))
    assert fn != FunctionNode(PrototypeNode("g", ("a", "b")), ASTNode.identifier("a"))


@given(st.floats(allow_nan=False))  # type: ignore[misc]
def test_number_node_holds_float(value: float) -> None:
    node = ASTNode.number(value)
    assert isinstance(node.value, float)
    assert node.to_dict()["value"] == value
