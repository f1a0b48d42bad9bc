"""
Lowers Kaleidoscope (K) syntax trees into LLVM IR through the backend interface.

This module defines the `LLVMEmitter` class, which walks one top-level form at
a time and issues instructions through a `Backend` (see `kaleido_backend`).

Supported Features:
    - Expressions: number literals, variables, `+ - * /`, `<` (as 0.0/1.0), calls
    - Control flow: `if/then/else` lowered to then/else/done blocks joined by a phi node
    - Prototypes: `double(double, ...)` functions with external linkage; an
      `extern` may later be given a body by a `def` of the same arity
    - Functions: entry block, return of the body value, per-function optimization

Behavior:
    - The symbol environment maps parameter names to the function's arguments.
      It is cleared at the start of every function and populated by the prototype.
    - Operands are emitted left to right.
    - A function whose body fails to lower is removed again, so no partial
      emission survives.

Raises:
    - `CodegenError`: For undefined variables or functions, arity mismatches,
      unsupported operators and invalid redefinitions.
"""

from llvmlite import ir  # type: ignore

from kaleido.kaleido_ast import ASTNode, FunctionNode, PrototypeNode
from kaleido.kaleido_backend import Backend, function_type
from kaleido.kaleido_constants import ANON_FUNCTION_NAME
from kaleido.kaleido_errors import CodegenError


class LLVMEmitter:
    """Emits LLVM IR from K syntax trees.

    Attributes:
        backend (Backend): Module, builder and optional engine to emit into.
        named_values (dict[str, ir.Value]): Symbol environment of the function being lowered.
    """

    def __init__(self, backend: Backend) -> None:
        self.backend = backend
        self.named_values: dict[str, ir.Value] = {}

    @property
    def builder(self):  # type: ignore[no-untyped-def]
        return self.backend.builder

    @property
    def module(self):  # type: ignore[no-untyped-def]
        return self.backend.module

    def emit_expr(self, node: ASTNode) -> ir.Value:
        """Dispatches to the `emit_expr_<kind>` method for `node`."""
        method = getattr(self, f"emit_expr_{node.kind}", None)
        if method is None:
            raise CodegenError(
                f"No emitter method for node kind '{node.kind}' "
                f"(line {node.line}, col {node.col})"
            )
        return method(node)

    def emit_expr_number(self, node: ASTNode) -> ir.Value:
        return self.builder.const_double(node.value)

    def emit_expr_identifier(self, node: ASTNode) -> ir.Value:
        value = self.named_values.get(node.value)
        if value is None:
            raise CodegenError("Undefined variable")
        return value

    def emit_expr_binary(self, node: ASTNode) -> ir.Value:
        lhs = self.emit_expr(node.children[0])
        rhs = self.emit_expr(node.children[1])
        op = node.value
        if op == "+":
            return self.builder.fadd(lhs, rhs)
        if op == "-":
            return self.builder.fsub(lhs, rhs)
        if op == "*":
            return self.builder.fmul(lhs, rhs)
        if op == "/":
            return self.builder.fdiv(lhs, rhs)
        if op == "<":
            cmp = self.builder.fcmp_ult(lhs, rhs)
            return self.builder.uitofp_double(cmp)
        raise CodegenError("Unsupported binary operator")

    def emit_expr_call(self, node: ASTNode) -> ir.Value:
        callee = self.module.get_function(node.value)
        if callee is None:
            raise CodegenError("Call to undefined function")
        if len(callee.args) != len(node.children):
            raise CodegenError("Incorrect arg count")
        args = [self.emit_expr(arg) for arg in node.children]
        return self.builder.call(callee, args)

    def emit_expr_if(self, node: ASTNode) -> ir.Value:
        cond_node, then_node, else_node = node.children
        builder = self.builder

        cond = builder.fcmp_one(self.emit_expr(cond_node), builder.const_double(0.0))

        function = builder.function
        then_block = builder.create_block(function, "then")
        else_block = builder.create_block(function, "else")
        done_block = builder.create_block(function, "done")
        builder.cond_branch(cond, then_block, else_block)

        builder.append_block(function, then_block)
        builder.position_at_end(then_block)
        then_value = self.emit_expr(then_node)
        builder.branch(done_block)
        # Nested control flow may have moved the insertion point.
        then_end = builder.block

        builder.append_block(function, else_block)
        builder.position_at_end(else_block)
        else_value = self.emit_expr(else_node)
        builder.branch(done_block)
        else_end = builder.block

        builder.append_block(function, done_block)
        builder.position_at_end(done_block)
        phi = builder.phi()
        phi.add_incoming(then_value, then_end)
        phi.add_incoming(else_value, else_end)
        return phi

    def emit_prototype(self, node: PrototypeNode) -> ir.Function:
        """Creates (or re-opens an extern declaration for) the function named by `node`.

        Returns:
            ir.Function: The function object, with parameters named after `node.params`.
        """
        name = node.name or ANON_FUNCTION_NAME
        function = self.module.get_function(name)
        if function is None:
            function = self.module.add_function(function_type(len(node.params)), name)
        else:
            if not function.is_declaration:
                raise CodegenError("Redefinition of function not allowed")
            if len(function.args) != len(node.params):
                raise CodegenError("Redefining function with arity mismatch")

        for arg, param in zip(function.args, node.params):
            arg.name = param
            self.named_values[param] = arg
        return function

    def emit_extern(self, node: PrototypeNode) -> ir.Function:
        function = self.emit_prototype(node)
        self.backend.declare_external(function.name)
        return function

    def emit_function(self, node: FunctionNode) -> ir.Function:
        """Lowers a complete function and runs the optimization pipeline over it."""
        self.named_values.clear()
        existed = self.module.get_function(node.prototype.name or ANON_FUNCTION_NAME) is not None
        function = self.emit_prototype(node.prototype)

        entry = function.append_basic_block(name="entry")
        self.builder.position_at_end(entry)
        try:
            body = self.emit_expr(node.body)
            self.builder.ret(body)
            self.backend.optimize(function)
        except CodegenError:
            if existed:
                # Keep the extern declaration, drop the half-built body.
                function.blocks.clear()
            else:
                self.module.erase_function(function)
            raise
        return function

    def emit(self, node: FunctionNode | PrototypeNode) -> ir.Function:
        """Lowers one top-level form: a function definition or an extern prototype."""
        if isinstance(node, FunctionNode):
            return self.emit_function(node)
        if isinstance(node, PrototypeNode):
            return self.emit_extern(node)
        raise TypeError(f"Cannot emit top-level form: {node!r}")


__all__ = ["LLVMEmitter"]
