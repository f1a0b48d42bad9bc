"""
Code-generation backend for the Kaleidoscope (K) toolchain, built on llvmlite.

The lowerer only talks to the narrow interface described by the `Backend`
protocol. `LLVMBackend` is the concrete implementation and bundles:

    - ModuleHandle: the process-wide `llvmlite.ir.Module` plus lookup, insertion and erasure of functions.
    - CodeBuilder: an `llvmlite.ir.IRBuilder` exposing the float instruction set K needs.
    - FunctionOptimizer: a per-function pipeline on llvmlite's new pass manager.
    - JITEngine: optional MCJIT execution that calls compiled functions through ctypes.
    - HostLibrary: Python functions (`putchard`, `printd`) that JIT code can call.

Every value in K is a double, so every function has the signature
`double(double, ..., double)`.

Raises:
    CodegenError: If the module text cannot be parsed or verified by LLVM, or a
        JIT symbol cannot be resolved.
"""

from __future__ import annotations

import ctypes
import sys
from typing import Any, Protocol

from llvmlite import binding as llvm  # type: ignore
from llvmlite import ir  # type: ignore

from kaleido.kaleido_errors import CodegenError

DOUBLE = ir.DoubleType()

_native_ready = False


def initialize_native() -> None:
    """Initializes the native target once per process."""
    global _native_ready
    if _native_ready:
        return
    llvm.initialize_native_target()
    llvm.initialize_native_asmprinter()
    _native_ready = True


def function_type(arity: int) -> ir.FunctionType:
    return ir.FunctionType(DOUBLE, [DOUBLE] * arity)


def _release_global_name(module: ir.Module, name: str) -> None:
    """Frees `name` in the module scope so a new global may take it.

    llvmlite has no public API for this. `NameScope` has recorded used names
    in `_useset` since at least llvmlite 0.44.
    """
    used = getattr(module.scope, "_useset", None)
    if used is None:
        raise CodegenError(f"Cannot release function name: {name}")
    used.discard(name)


def called_declarations(function: ir.Function) -> list[str]:
    """Names of the declarations `function` can reach through direct calls."""
    seen = {function.name}
    pending = [function]
    found: list[str] = []
    while pending:
        current = pending.pop()
        for block in current.blocks:
            for instr in block.instructions:
                callee = getattr(instr, "callee", None)
                if not isinstance(callee, ir.Function) or callee.name in seen:
                    continue
                seen.add(callee.name)
                if callee.is_declaration:
                    found.append(callee.name)
                else:
                    pending.append(callee)
    return found


class Backend(Protocol):  # pragma: no cover
    """Interface consumed by the lowerer.

    Attributes:
        module: Function table of the session (`get_function`, `add_function`, `erase_function`).
        builder: Instruction builder with a current insertion block.
        engine: Optional JIT engine; None when compiled code is only dumped.
    """

    module: "ModuleHandle"
    builder: "CodeBuilder"
    engine: "JITEngine | None"

    def optimize(self, function: ir.Function) -> str: ...  # pragma: no cover

    def declare_external(self, name: str) -> None: ...  # pragma: no cover


class ModuleHandle:
    """Owns the session's `ir.Module`.

    Attributes:
        ir_module (ir.Module): The module every prototype and function is attached to.
    """

    def __init__(self, name: str = "kaleido") -> None:
        self.ir_module = ir.Module(name=name)

    def get_function(self, name: str) -> ir.Function | None:
        value = self.ir_module.globals.get(name)
        return value if isinstance(value, ir.Function) else None

    def add_function(self, signature: ir.FunctionType, name: str) -> ir.Function:
        """Creates `name` with `signature`, or returns the function already bound to `name`."""
        existing = self.get_function(name)
        if existing is not None:
            return existing
        return ir.Function(self.ir_module, signature, name=name)

    def erase_function(self, function: ir.Function) -> None:
        """Removes `function` from the module so its name can be bound again."""
        name = function.name
        if self.ir_module.globals.get(name) is function:
            del self.ir_module.globals[name]
            _release_global_name(self.ir_module, name)

    def defined_functions(self) -> list[ir.Function]:
        return [f for f in self.ir_module.functions if not f.is_declaration]

    def __str__(self) -> str:
        return str(self.ir_module)


class CodeBuilder:
    """Instruction builder with a current insertion point.

    Thin layer over `ir.IRBuilder` so the lowerer issues exactly the operations
    K needs and nothing more.
    """

    def __init__(self) -> None:
        self._ir = ir.IRBuilder()

    @property
    def block(self) -> ir.Block:
        return self._ir.block

    @property
    def function(self) -> ir.Function:
        return self._ir.function

    def position_at_end(self, block: ir.Block) -> None:
        self._ir.position_at_end(block)

    def create_block(self, function: ir.Function, name: str) -> ir.Block:
        """Creates a block owned by `function` but not yet placed in its body."""
        return ir.Block(parent=function, name=name)

    def append_block(self, function: ir.Function, block: ir.Block) -> ir.Block:
        function.blocks.append(block)
        return block

    def const_double(self, value: float) -> ir.Constant:
        return ir.Constant(DOUBLE, float(value))

    def fadd(self, lhs: ir.Value, rhs: ir.Value, name: str = "addtmp") -> ir.Value:
        return self._ir.fadd(lhs, rhs, name=name)

    def fsub(self, lhs: ir.Value, rhs: ir.Value, name: str = "subtmp") -> ir.Value:
        return self._ir.fsub(lhs, rhs, name=name)

    def fmul(self, lhs: ir.Value, rhs: ir.Value, name: str = "multmp") -> ir.Value:
        return self._ir.fmul(lhs, rhs, name=name)

    def fdiv(self, lhs: ir.Value, rhs: ir.Value, name: str = "divtmp") -> ir.Value:
        return self._ir.fdiv(lhs, rhs, name=name)

    def fcmp_ult(self, lhs: ir.Value, rhs: ir.Value, name: str = "cmptmp") -> ir.Value:
        return self._ir.fcmp_unordered("<", lhs, rhs, name=name)

    def fcmp_one(self, lhs: ir.Value, rhs: ir.Value, name: str = "ifcond") -> ir.Value:
        return self._ir.fcmp_ordered("!=", lhs, rhs, name=name)

    def uitofp_double(self, value: ir.Value, name: str = "booltmp") -> ir.Value:
        return self._ir.uitofp(value, DOUBLE, name=name)

    def call(self, callee: ir.Function, args: list[ir.Value], name: str = "calltmp") -> ir.Value:
        return self._ir.call(callee, args, name=name)

    def cond_branch(self, cond: ir.Value, then_block: ir.Block, else_block: ir.Block) -> None:
        self._ir.cbranch(cond, then_block, else_block)

    def branch(self, target: ir.Block) -> None:
        self._ir.branch(target)

    def ret(self, value: ir.Value) -> None:
        self._ir.ret(value)

    def phi(self, name: str = "iftmp") -> ir.PhiInstr:
        return self._ir.phi(DOUBLE, name=name)


class FunctionOptimizer:
    """Runs the per-function optimization pipeline.

    Basic alias analysis comes with the pass builder's analysis manager;
    instruction combining, reassociation, GVN and CFG simplification are
    appended explicitly so every level above 0 runs them. A level of 0 skips
    the pipeline, for debugging.
    """

    def __init__(self, target_machine: Any, opt_level: int = 2) -> None:
        self.target_machine = target_machine
        self.opt_level = opt_level

    @property
    def enabled(self) -> bool:
        return self.opt_level > 0

    def run(self, llvm_function: Any) -> None:
        if not self.enabled:
            return
        # Analysis caches are keyed by function address, so never reuse a pipeline.
        pto = llvm.PipelineTuningOptions(speed_level=self.opt_level)
        pb = llvm.create_pass_builder(self.target_machine, pto)
        fpm = pb.getFunctionPassManager()
        fpm.add_instruction_combine_pass()
        fpm.add_reassociate_pass()
        fpm.add_new_gvn_pass()
        fpm.add_simplify_cfg_pass()
        fpm.run(llvm_function, pb)


class HostLibrary:
    """Python-implemented functions that JIT code may call after an `extern` declaration."""

    SIGNATURE = ctypes.CFUNCTYPE(ctypes.c_double, ctypes.c_double)

    def __init__(self, out: Any = None) -> None:
        self.out = out
        # Keep the ctypes thunks alive for as long as LLVM may call them.
        self.callbacks = {
            "putchard": self.SIGNATURE(self.putchard),
            "printd": self.SIGNATURE(self.printd),
        }

    def _stream(self) -> Any:
        return self.out if self.out is not None else sys.stdout

    def putchard(self, x: float) -> float:
        self._stream().write(chr(int(x)))
        return 0.0

    def printd(self, x: float) -> float:
        self._stream().write(f"{x:f}\n")
        return 0.0

    def address_of(self, name: str) -> int | None:
        callback = self.callbacks.get(name)
        if callback is None:
            return None
        return ctypes.cast(callback, ctypes.c_void_p).value


class JITEngine:
    """Executes compiled functions with LLVM's MCJIT.

    Each call compiles a snapshot of the whole module in a fresh engine, runs
    the requested function and then disposes of the engine, so redefinitions
    never clash with code compiled earlier.
    """

    def __init__(self, host: HostLibrary | None = None) -> None:
        self.host = host or HostLibrary()
        self._process = ctypes.CDLL(None)

    def bind_symbol(self, name: str) -> bool:
        """Makes `name` resolvable by JIT code. Returns False if the host has no such symbol."""
        address = self.host.address_of(name)
        if address is None:
            if llvm.address_of_symbol(name) is not None:
                return True
            symbol = getattr(self._process, name, None)
            if symbol is None:
                return False
            address = ctypes.cast(symbol, ctypes.c_void_p).value
        llvm.add_symbol(name, address)
        return True

    def run(self, llvm_module: Any, name: str) -> float:
        """Compiles `llvm_module` and calls its parameterless function `name`.

        The engine takes ownership of both the module and its target machine.
        """
        target_machine = llvm.Target.from_default_triple().create_target_machine()
        try:
            engine = llvm.create_mcjit_compiler(llvm_module, target_machine)
        except RuntimeError as e:
            raise CodegenError(f"JIT setup failed: {str(e).strip()}") from e
        with engine:
            engine.finalize_object()
            engine.run_static_constructors()
            address = engine.get_function_address(name)
            if not address:
                raise CodegenError(f"Unknown function in JIT: {name}")
            cfunc = ctypes.CFUNCTYPE(ctypes.c_double)(address)
            return float(cfunc())


class LLVMBackend:
    """The llvmlite implementation of `Backend`.

    Attributes:
        module (ModuleHandle): Session module.
        builder (CodeBuilder): Session instruction builder.
        optimizer (FunctionOptimizer): Per-function optimization pipeline.
        engine (JITEngine | None): Execution engine, or None in dump mode.
        listings (dict[str, str]): Optimized textual form of each defined function, by name.
        unbound (set[str]): Extern names with no host symbol behind them.
    """

    def __init__(self, jit: bool = True, opt_level: int = 2, host: HostLibrary | None = None) -> None:
        initialize_native()
        target = llvm.Target.from_default_triple()
        self.target_machine = target.create_target_machine()

        self.module = ModuleHandle()
        self.module.ir_module.triple = llvm.get_default_triple()
        self.module.ir_module.data_layout = str(self.target_machine.target_data)

        self.builder = CodeBuilder()
        self.optimizer = FunctionOptimizer(self.target_machine, opt_level)
        self.engine: JITEngine | None = JITEngine(host) if jit else None
        self.listings: dict[str, str] = {}
        self.unbound: set[str] = set()

    def compile_module(self) -> Any:
        """Parses and verifies the current module with LLVM."""
        try:
            llvm_module = llvm.parse_assembly(str(self.module))
            llvm_module.verify()
        except RuntimeError as e:
            raise CodegenError(f"Invalid module: {str(e).strip()}") from e
        return llvm_module

    def optimize(self, function: ir.Function) -> str:
        """Runs the optimization pipeline over `function` and returns its textual form."""
        llvm_module = self.compile_module()
        llvm_function = llvm_module.get_function(function.name)
        self.optimizer.run(llvm_function)
        listing = str(llvm_function)
        self.listings[function.name] = listing
        return listing

    def declare_external(self, name: str) -> None:
        """Binds the extern `name` to a host symbol, remembering it if none exists."""
        if self.engine is None:
            return
        if self.engine.bind_symbol(name):
            self.unbound.discard(name)
        else:
            self.unbound.add(name)

    def dump(self, function: ir.Function) -> str:
        """Returns the textual form of `function`, optimized where it has a body."""
        if not function.is_declaration and function.name in self.listings:
            return self.listings[function.name]
        llvm_module = self.compile_module()
        return str(llvm_module.get_function(function.name))

    def forget(self, function: ir.Function) -> None:
        self.listings.pop(function.name, None)

    def execute(self, function: ir.Function) -> float:
        """JIT-compiles the module and calls the parameterless `function`."""
        if self.engine is None:
            raise CodegenError("No execution engine available")
        for name in called_declarations(function):
            if name in self.unbound:
                # MCJIT aborts the process on unresolved symbols.
                raise CodegenError(f"Unknown external function: {name}")
        llvm_module = self.compile_module()
        for defined in self.module.defined_functions():
            self.optimizer.run(llvm_module.get_function(defined.name))
        return self.engine.run(llvm_module, function.name)


__all__ = [
    "Backend",
    "CodeBuilder",
    "FunctionOptimizer",
    "HostLibrary",
    "JITEngine",
    "LLVMBackend",
    "ModuleHandle",
    "called_declarations",
    "function_type",
    "initialize_native",
]
