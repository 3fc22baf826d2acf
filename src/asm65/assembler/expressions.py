"""
Assembly Expression Evaluator
=============================

This module parses operand expressions into a small expression tree and
evaluates the tree against the symbol table and the current program
counter. All arithmetic is unsigned 16-bit: results wrap modulo 65536.

Expression Grammar
------------------
Levels from loosest to tightest binding:

1. Unary negate: -            (only at the start of an expression or
                               directly inside parentheses)
2. Multiplicative: * / %
3. Additive: + -
4. Relational: < > <= >= = <> ><   (result is 0 or 1)
5. Low/high byte: < >          (unary, binds to the following primary)
6. Primary: number, one-character string, symbol, * (current PC),
            ( expression )

Because multiplication binds looser than addition, `2*3+4` is 14, and
because negation is the loosest level, `-2*3` negates the whole product.
A relational operator compares the additive operands around it, so
`a+1=b` reads as `a + (1=b)`; parenthesize comparisons of sums.

Example Usage
-------------
>>> from asm65.assembler.expressions import evaluate_expression
>>> evaluate_expression("$FFFF + 1")
0
>>> evaluate_expression(">$1234")
18

Forward References
------------------
The tree is kept separate from its value so that the pass driver can ask
which symbols an operand refers to before deciding whether to evaluate
it at all. Contexts that forbid forward references evaluate with
`allow_forward=False`, which accepts only symbols whose defining line has
already been processed in the current pass.
"""

from dataclasses import dataclass
from enum import Enum, auto
from typing import Callable, Optional

from asm65.errors import ExpressionError, SourceLocation
from asm65.assembler.lexer import Token, TokenType, tokenize_operand
from asm65.assembler.symbols import SymbolTable


# =============================================================================
# Expression Tree Nodes
# =============================================================================

class ExprNodeType(Enum):
    """Types of expression tree nodes."""
    NUMBER = auto()      # Literal number (or one-character string)
    SYMBOL = auto()      # Symbol reference
    PC = auto()          # Current program counter (*)
    UNARY_OP = auto()    # Negate, low byte, high byte
    BINARY_OP = auto()   # a + b, a < b ...


@dataclass
class ExprNode:
    """
    Expression tree node.

    Only the fields relevant to `node_type` are set. The tree lives for
    one evaluation and is then discarded.
    """
    node_type: ExprNodeType
    value: int | str | None = None   # For NUMBER/SYMBOL
    operator: str | None = None      # For UNARY_OP/BINARY_OP
    left: Optional["ExprNode"] = None
    right: Optional["ExprNode"] = None
    location: Optional[SourceLocation] = None


_MULTIPLICATIVE = {
    TokenType.STAR: "*",
    TokenType.SLASH: "/",
    TokenType.PERCENT: "%",
}

_ADDITIVE = {
    TokenType.PLUS: "+",
    TokenType.MINUS: "-",
}

_RELATIONAL = {
    TokenType.LT: "<",
    TokenType.GT: ">",
    TokenType.LE: "<=",
    TokenType.GE: ">=",
    TokenType.EQ: "=",
    TokenType.NE: "<>",
}


def referenced_symbols(node: ExprNode) -> set[str]:
    """Return the names of all symbols referenced by an expression tree."""
    names: set[str] = set()
    stack = [node]
    while stack:
        current = stack.pop()
        if current.node_type is ExprNodeType.SYMBOL:
            names.add(current.value)
        if current.left is not None:
            stack.append(current.left)
        if current.right is not None:
            stack.append(current.right)
    return names


# =============================================================================
# Expression Evaluator
# =============================================================================

class ExpressionEvaluator:
    """
    Parses and evaluates assembly expressions.

    It uses a two-stage approach:

    1. Parse tokens into an expression tree (`parse`)
    2. Evaluate the tree with the current symbol table (`evaluate_node`)

    `evaluate` does both in one call.

    Attributes:
        symbols: The symbol table used to resolve names
        pc_getter: Callable returning the current program counter; it
                   raises if the program counter has not been set yet
    """

    def __init__(self, symbols: SymbolTable, pc_getter: Callable[[], int]):
        self.symbols = symbols
        self.pc_getter = pc_getter
        self._tokens: list[Token] = []
        self._pos = 0
        self._location: Optional[SourceLocation] = None

    # =========================================================================
    # Main Interface
    # =========================================================================

    def parse(
        self,
        tokens: list[Token],
        location: Optional[SourceLocation] = None,
    ) -> ExprNode:
        """
        Parse a complete token list into an expression tree.

        Args:
            tokens: Token list representing exactly one expression
            location: Source location for error reporting

        Raises:
            ExpressionError: If the expression is malformed or followed by
                             stray tokens
        """
        self._tokens = tokens
        self._pos = 0
        self._location = location

        if self._current().type is TokenType.EOF:
            raise ExpressionError("missing expression", location or self._current().location)

        node = self._parse_negate()

        tok = self._current()
        if tok.type is not TokenType.EOF:
            raise ExpressionError(
                f"unexpected '{tok.value}' in expression",
                tok.location,
            )
        return node

    def evaluate(
        self,
        tokens: list[Token],
        location: Optional[SourceLocation] = None,
        allow_forward: bool = True,
    ) -> int:
        """
        Parse and evaluate an expression.

        Args:
            tokens: Token list representing the expression
            location: Source location for error reporting
            allow_forward: If False, symbols not yet defined in the current
                           pass are rejected

        Returns:
            The 16-bit result

        Raises:
            ExpressionError: If the expression is malformed
            UndefinedSymbolError: If a symbol cannot be resolved
        """
        return self.evaluate_node(self.parse(tokens, location), allow_forward)

    def evaluate_node(self, node: ExprNode, allow_forward: bool = True) -> int:
        """Evaluate an expression tree to a 16-bit value."""
        kind = node.node_type

        if kind is ExprNodeType.NUMBER:
            return node.value & 0xFFFF

        if kind is ExprNodeType.SYMBOL:
            return self.symbols.lookup(node.value, node.location, allow_forward)

        if kind is ExprNodeType.PC:
            return self.pc_getter() & 0xFFFF

        if kind is ExprNodeType.UNARY_OP:
            operand = self.evaluate_node(node.left, allow_forward)
            if node.operator == "-":
                return (~operand + 1) & 0xFFFF
            if node.operator == "<":
                return operand & 0xFF
            return (operand >> 8) & 0xFF

        left = self.evaluate_node(node.left, allow_forward)
        right = self.evaluate_node(node.right, allow_forward)
        return self._apply_binary(node.operator, left, right, node.location)

    def all_defined_in_pass(self, node: ExprNode) -> bool:
        """True if every symbol in the tree was defined earlier in this pass."""
        return all(self.symbols.is_defined_in_pass(name) for name in referenced_symbols(node))

    # =========================================================================
    # Token Navigation
    # =========================================================================

    def _current(self) -> Token:
        """Get current token, synthesizing EOF past the end of the list."""
        if self._pos >= len(self._tokens):
            last = self._tokens[-1] if self._tokens else None
            return Token(
                TokenType.EOF, None,
                last.line if last else 1,
                last.column + 1 if last else 1,
                last.filename if last else "<input>",
            )
        return self._tokens[self._pos]

    def _advance(self) -> Token:
        """Consume and return current token."""
        token = self._current()
        self._pos += 1
        return token

    def _expect(self, token_type: TokenType, message: str) -> Token:
        """Expect a specific token type, raising error if not found."""
        if self._current().type is not token_type:
            raise ExpressionError(message, self._current().location)
        return self._advance()

    # =========================================================================
    # Recursive Descent Parser
    # =========================================================================

    def _parse_negate(self) -> ExprNode:
        """Parse unary negate (loosest level)."""
        tok = self._current()
        if tok.type is TokenType.MINUS:
            self._advance()
            operand = self._parse_negate()
            return ExprNode(ExprNodeType.UNARY_OP, operator="-", left=operand,
                            location=tok.location)
        return self._parse_multiplicative()

    def _parse_multiplicative(self) -> ExprNode:
        """Parse * / %."""
        left = self._parse_additive()
        while self._current().type in _MULTIPLICATIVE:
            tok = self._advance()
            right = self._parse_additive()
            left = ExprNode(ExprNodeType.BINARY_OP, operator=_MULTIPLICATIVE[tok.type],
                            left=left, right=right, location=tok.location)
        return left

    def _parse_additive(self) -> ExprNode:
        """Parse + -."""
        left = self._parse_relational()
        while self._current().type in _ADDITIVE:
            tok = self._advance()
            right = self._parse_relational()
            left = ExprNode(ExprNodeType.BINARY_OP, operator=_ADDITIVE[tok.type],
                            left=left, right=right, location=tok.location)
        return left

    def _parse_relational(self) -> ExprNode:
        """Parse comparison operators; each yields 0 or 1."""
        left = self._parse_byte_select()
        while self._current().type in _RELATIONAL:
            tok = self._advance()
            right = self._parse_byte_select()
            left = ExprNode(ExprNodeType.BINARY_OP, operator=_RELATIONAL[tok.type],
                            left=left, right=right, location=tok.location)
        return left

    def _parse_byte_select(self) -> ExprNode:
        """Parse unary < (low byte) and > (high byte)."""
        tok = self._current()
        if tok.type in (TokenType.LT, TokenType.GT):
            self._advance()
            operand = self._parse_byte_select()
            return ExprNode(ExprNodeType.UNARY_OP, operator=tok.value, left=operand,
                            location=tok.location)
        return self._parse_primary()

    def _parse_primary(self) -> ExprNode:
        """Parse primary expressions (numbers, symbols, PC, groups)."""
        tok = self._current()

        if tok.type is TokenType.NUMBER:
            self._advance()
            return ExprNode(ExprNodeType.NUMBER, value=tok.value, location=tok.location)

        if tok.type is TokenType.STRING:
            if len(tok.value) != 1:
                raise ExpressionError(
                    f"string \"{tok.value}\" is not a single character",
                    tok.location,
                    hint="only .byte accepts longer strings",
                )
            self._advance()
            return ExprNode(ExprNodeType.NUMBER, value=ord(tok.value), location=tok.location)

        if tok.type is TokenType.IDENTIFIER:
            self._advance()
            return ExprNode(ExprNodeType.SYMBOL, value=tok.value, location=tok.location)

        if tok.type is TokenType.STAR:
            self._advance()
            return ExprNode(ExprNodeType.PC, location=tok.location)

        if tok.type is TokenType.LPAREN:
            self._advance()
            node = self._parse_negate()
            self._expect(TokenType.RPAREN, "missing closing ')'")
            return node

        if tok.type is TokenType.EOF:
            raise ExpressionError("missing operand at end of expression", tok.location)

        raise ExpressionError(f"expected a value, got '{tok.value}'", tok.location)

    # =========================================================================
    # Arithmetic
    # =========================================================================

    @staticmethod
    def _apply_binary(
        operator: str,
        left: int,
        right: int,
        location: Optional[SourceLocation],
    ) -> int:
        if operator == "+":
            return (left + right) & 0xFFFF
        if operator == "-":
            return (left - right) & 0xFFFF
        if operator == "*":
            return (left * right) & 0xFFFF
        if operator in ("/", "%"):
            if right == 0:
                word = "division" if operator == "/" else "modulo"
                raise ExpressionError(f"{word} by zero", location)
            return (left // right if operator == "/" else left % right) & 0xFFFF
        if operator == "<":
            return int(left < right)
        if operator == ">":
            return int(left > right)
        if operator == "<=":
            return int(left <= right)
        if operator == ">=":
            return int(left >= right)
        if operator == "=":
            return int(left == right)
        return int(left != right)


# =============================================================================
# Convenience Functions
# =============================================================================

def evaluate_expression(
    text: str,
    symbols: Optional[dict[str, int]] = None,
    pc: int = 0,
) -> int:
    """
    Evaluate an expression string outside of an assembly run.

    Args:
        text: Expression source, e.g. "start + 2"
        symbols: Symbol values (all treated as already defined)
        pc: Value of `*`

    Returns:
        Expression result as 16-bit integer
    """
    table = SymbolTable()
    for name, value in (symbols or {}).items():
        table.predefine(name, value)
    evaluator = ExpressionEvaluator(table, lambda: pc)
    return evaluator.evaluate(tokenize_operand(text))
