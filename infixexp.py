"""
infix expression interpreter, based on 22.py
- identifiers as inert leaves, no unary operators
- expression tree printed fully parenthesized
- simplification by identity and zero rules
- interactive dialogue, stop with a line starting with '!'
- values computed as doubles, parentheses nested at most MAX_NESTING deep
- --ast renders Tree.html; with --local-echarts it loads echarts.min.js
  from its own directory, which has to be put there by hand

grammar:
expression            : term ((PLUS | MINUS) term)*
term                  : factor ((MUL | DIV) factor)*
factor                : NUMBER
                      | IDENTIFIER
                      | LPAREN expression RPAREN

simplification:
0 * E, E * 0 and 0 / E are simplified to 0
0 + E, E + 0, E - 0, 1 * E, E * 1 and E / 1 are simplified to E
"""

from collections import namedtuple
from enum import Enum
import argparse
import math

from pyecharts import options as opts
from pyecharts.charts import Tree
from pyecharts.globals import CurrentConfig

LOCAL_ECHARTS = False
MAX_NESTING = 200
PROMPT = 'give an expression: '
STOP_CHAR = '!'
_SHOULD_LOG_TOKENS = False
_SHOULD_LOG_SIMPLIFY = False

# side kept by remove_subtree
LEFT = 0
RIGHT = 1

###############################################################################
#                                                                             #
#   ERROR MESSAGE                                                             #
#                                                                             #
###############################################################################

Position = namedtuple('Position', ['line', 'col'])


class ErrorInfo:
    # parser error

    @staticmethod
    def unexpected_token(item, want):
        return f'token `{item}` is not expected, want `{want}`'

    @staticmethod
    def unexpected_end(want):
        return f'input ends too early, want `{want}`'

    @staticmethod
    def trailing_token(item):
        return f'token `{item}` is left after the expression'

    @staticmethod
    def nesting_too_deep(limit):
        return f'parentheses nested deeper than {limit}'

    # interpreter error

    @staticmethod
    def id_not_numerical(item):
        return f'identifier `{item}` has no value'

    @staticmethod
    def division_by_zero(item):
        return f'divisor of `{item}` is zero'

    @staticmethod
    def unsupported_op(item):
        return f'op `{item}` is not supported'


class Error(Exception):
    def __init__(self, position, message):
        self.position = position
        self.message = message

    def __str__(self):
        return f'{self.__class__.__name__}: <{self.position.line}:{self.position.col}>: {self.message}'

    __repr__ = __str__


class ParserError(Error):
    pass


class InterpreterError(Error):
    pass


###############################################################################
#                                                                             #
#  LEXER                                                                      #
#                                                                             #
###############################################################################

# Token types
class TokenType(Enum):
    NUMBER          = 'NUMBER'
    IDENTIFIER      = 'IDENTIFIER'
    SYMBOL          = 'SYMBOL'
    EOF             = 'EOF'


class Token:
    def __init__(self, token_type, value, position):
        """Token

        Args:
          token_type: TokenType
          value: int for NUMBER, str for IDENTIFIER and SYMBOL
          position: Position
        """
        self.type = token_type
        self.value = value
        self.position = position

    def __str__(self):
        return f'Token({self.type}, {repr(self.value)}, pos={self.position.line}:{self.position.col})'

    def __repr__(self):
        return self.__str__()


class Lexer:
    def __init__(self, text: str):
        self.text = text
        self.pos = 0
        self.current_char = self.text[self.pos] if self.text else None
        # for error information
        self.line = 1
        self.col = 0

    def position(self):
        return Position(self.line, self.col)

    def log(self, msg):
        if _SHOULD_LOG_TOKENS:
            print(msg)

    def advance(self):
        """get next char, and increse the pos pointer
        """
        if self.current_char == '\n':
            self.line += 1
            self.col = 0

        self.pos += 1
        self.col += 1
        if self.pos > len(self.text) - 1:
            self.current_char = None  # end of input
        else:
            self.current_char = self.text[self.pos]

    def skip_whitespace(self):
        while self.current_char is not None and self.current_char.isspace():
            self.advance()

    def number(self):
        """parse an integer from the input
        """
        token = Token(TokenType.NUMBER, None, self.position())

        result = ''
        while self.current_char is not None and self.current_char.isdecimal():
            result += self.current_char
            self.advance()

        token.value = int(result)
        return token

    def identifier(self):
        """parse an identifier: a letter followed by letters and digits
        """
        token = Token(TokenType.IDENTIFIER, None, self.position())

        result = ''
        while self.current_char is not None and self.current_char.isalnum():
            result += self.current_char
            self.advance()

        token.value = result
        return token

    def get_next_token(self):
        """lexical analyzer, lexer, scanner, tokenizer

        breaking a line apart into tokens. One token one time.
        """
        while self.current_char is not None:
            # space
            if self.current_char.isspace():
                self.skip_whitespace()
                continue

            # digit -> number
            if self.current_char.isdecimal():
                return self.number()

            # alpha -> identifier
            if self.current_char.isalpha():
                return self.identifier()

            # anything else is a single-char symbol, the parser decides
            token = Token(TokenType.SYMBOL, self.current_char, self.position())
            self.advance()
            return token

        return Token(TokenType.EOF, None, self.position())


def token_list(text):
    """all tokens of `text`, without the closing EOF token
    """
    lexer = Lexer(text)
    tokens = []
    token = lexer.get_next_token()
    while token.type != TokenType.EOF:
        lexer.log(token)
        tokens.append(token)
        token = lexer.get_next_token()
    return tokens


def format_tokens(tokens):
    return ' '.join(str(token.value) for token in tokens)


###############################################################################
#                                                                             #
#  AST                                                                        #
#                                                                             #
###############################################################################

class AST:
    pass


class Num(AST):
    """
    numeric leaf
    """
    def __init__(self, token: Token):
        self.token = token
        self.value = token.value


class Var(AST):
    """
    identifier leaf, its name is borrowed from the token
    """
    def __init__(self, token: Token):
        self.token = token
        self.value = token.value


class BinOp(AST):
    """
    owns both children
    """
    def __init__(self, left, op: Token, right):
        self.left = left
        self.op = op
        self.right = right
        self.token = self.op


def new_node(token_type, token, left=None, right=None):
    if token_type == TokenType.NUMBER:
        return Num(token)
    elif token_type == TokenType.IDENTIFIER:
        return Var(token)
    elif token_type == TokenType.SYMBOL:
        return BinOp(left=left, op=token, right=right)
    raise ValueError(f'no tree node for {token_type}')


def fold_tree(node, leaf, combine):
    """post-order fold over a tree with an explicit stack

    leaf(node) gives the result for a leaf, combine(node, left, right) the
    result for a BinOp from the results of its children.
    """
    results = []
    stack = [(node, False)]
    while stack:
        current, expanded = stack.pop()
        if not isinstance(current, BinOp):
            results.append(leaf(current))
        elif not expanded:
            stack.append((current, True))
            stack.append((current.right, False))
            stack.append((current.left, False))
        else:
            right = results.pop()
            left = results.pop()
            results.append(combine(current, left, right))
    return results.pop()


def _unlink(node, left, right):
    node.left = None
    node.right = None


def free_tree(node):
    """release a tree: unlink every node from its children

    identifier names stay with their tokens.
    """
    fold_tree(node, lambda leaf: None, _unlink)


def is_numerical(node):
    """True when no identifier occurs in the tree
    """
    return fold_tree(node,
                     lambda leaf: isinstance(leaf, Num),
                     lambda op, left, right: left and right)


###############################################################################
#                                                                             #
#  PARSER                                                                     #
#                                                                             #
###############################################################################

class Parser:
    def __init__(self, tokens):
        self.tokens = tokens
        self.pos = 0
        self.current_token = self.tokens[0] if self.tokens else None
        self.nesting = 0

    def advance(self):
        self.pos += 1
        if self.pos > len(self.tokens) - 1:
            self.current_token = None  # no tokens left
        else:
            self.current_token = self.tokens[self.pos]

    def remaining(self):
        return self.tokens[self.pos:]

    def end_position(self):
        if not self.tokens:
            return Position(1, 0)
        last = self.tokens[-1]
        return Position(last.position.line, last.position.col + len(str(last.value)))

    def error(self, message):
        if self.current_token is None:
            raise ParserError(self.end_position(), message)
        raise ParserError(self.current_token.position, message)

    def is_symbol(self, *symbols):
        return (self.current_token is not None
                and self.current_token.type == TokenType.SYMBOL
                and self.current_token.value in symbols)

    def expression(self):
        """parse expression

        expression : term ((PLUS | MINUS) term)*
        """
        result = self.term()

        while self.is_symbol('+', '-'):
            op = self.current_token
            self.advance()
            try:
                right = self.term()
            except ParserError:
                free_tree(result)
                raise
            result = new_node(TokenType.SYMBOL, op, result, right)

        return result

    def term(self):
        """parse term

        term : factor ((MUL | DIV) factor)*
        """
        result = self.factor()

        while self.is_symbol('*', '/'):
            op = self.current_token
            self.advance()
            try:
                right = self.factor()
            except ParserError:
                free_tree(result)
                raise
            result = new_node(TokenType.SYMBOL, op, result, right)

        return result

    def factor(self):
        """parse factor

        factor : NUMBER
               | IDENTIFIER
               | LPAREN expression RPAREN
        """
        token = self.current_token
        if token is None:
            self.error(ErrorInfo.unexpected_end('factor'))

        if token.type == TokenType.NUMBER:
            self.advance()
            return new_node(TokenType.NUMBER, token)
        elif token.type == TokenType.IDENTIFIER:
            self.advance()
            return new_node(TokenType.IDENTIFIER, token)
        elif self.is_symbol('('):
            if self.nesting == MAX_NESTING:
                self.error(ErrorInfo.nesting_too_deep(MAX_NESTING))
            self.advance()
            self.nesting += 1
            result = self.expression()
            self.nesting -= 1
            if not self.is_symbol(')'):
                free_tree(result)
                if self.current_token is None:
                    self.error(ErrorInfo.unexpected_end(')'))
                self.error(ErrorInfo.unexpected_token(self.current_token.value, ')'))
            self.advance()
            return result
        else:
            self.error(ErrorInfo.unexpected_token(token.value, 'factor'))

    def parse(self):
        result = self.expression()
        if self.current_token is not None:
            free_tree(result)
            self.error(ErrorInfo.trailing_token(self.current_token.value))

        return result


def parse_expression(tokens):
    """parse the longest expression at the start of `tokens`

    returns (tree, remaining tokens); raises ParserError with nothing built.
    """
    parser = Parser(tokens)
    tree = parser.expression()
    return tree, parser.remaining()


def parse(tokens):
    return Parser(tokens).parse()


###############################################################################
#                                                                             #
#  PRINTER                                                                    #
#                                                                             #
###############################################################################

def iter_infix(node):
    stack = [node]
    while stack:
        item = stack.pop()
        if isinstance(item, str):
            yield item
        elif isinstance(item, BinOp):
            stack += [')', item.right, f' {item.op.value} ', item.left, '(']
        elif item is not None:
            yield str(item.value)


def render_infix(node):
    return ''.join(iter_infix(node))


###############################################################################
#                                                                             #
#  SIMPLIFIER                                                                 #
#                                                                             #
###############################################################################

def log_simplify(msg):
    if _SHOULD_LOG_SIMPLIFY:
        print(msg)


def literal_value(node):
    """value of a numeric leaf, None for anything else
    """
    if isinstance(node, Num):
        return node.value
    return None


def remove_subtree(node, side):
    """drop `node` and its child opposite to `side`, return the kept child
    """
    if side == LEFT:
        kept, dropped = node.left, node.right
    else:
        kept, dropped = node.right, node.left

    log_simplify(f'remove: {render_infix(node)} -> {render_infix(kept)}')

    node.left = None
    node.right = None
    free_tree(dropped)
    return kept


def simplify_node(node, left, right):
    """install already simplified children, then apply the first matching rule

    returns the node to put in place of `node`.
    """
    node.left = left
    node.right = right

    left = literal_value(left)
    right = literal_value(right)

    op = node.op.value
    if op == '*':
        if left == 0 or right == 1:
            return remove_subtree(node, LEFT)
        if right == 0 or left == 1:
            return remove_subtree(node, RIGHT)
    elif op == '/':
        if left == 0 or right == 1:
            return remove_subtree(node, LEFT)
    elif op == '+':
        if left == 0:
            return remove_subtree(node, RIGHT)
        if right == 0:
            return remove_subtree(node, LEFT)
    elif op == '-':
        if right == 0:
            return remove_subtree(node, LEFT)

    return node


def simplify(node):
    """rewrite the tree bottom-up, children are simplified before the node

    returns the node to put in place of `node`.
    """
    return fold_tree(node, lambda leaf: leaf, simplify_node)


###############################################################################
#                                                                             #
#  INTERPRETER                                                                #
#                                                                             #
###############################################################################

class NodeVisitor:
    def visit(self, node):
        """dispatches
        """
        method_name = 'visit_' + type(node).__name__
        visitor = getattr(self, method_name, self.generic_visitor)
        return visitor(node)

    def generic_visitor(self, node):
        raise Exception(f'No visit_{type(node).__name__} method')


class Interpreter(NodeVisitor):
    """computes the value of a numerical tree

    an identifier or a zero divisor is a logic error of the caller.
    """
    def __init__(self, tree) -> None:
        self.tree = tree

    def error(self, token, message):
        raise InterpreterError(token.position, message)

    def operate(self, node: BinOp, lval, rval):
        op = node.op.value
        if op == '+':
            return lval + rval
        elif op == '-':
            return lval - rval
        elif op == '*':
            return lval * rval
        elif op == '/':
            if rval == 0:
                self.error(node.op, ErrorInfo.division_by_zero(render_infix(node)))
            return lval / rval
        else:
            self.error(node.op, ErrorInfo.unsupported_op(op))

    def visit_Var(self, node: Var):
        self.error(node.token, ErrorInfo.id_not_numerical(node.value))

    def visit_Num(self, node: Num):
        # double semantics: a literal too large for a float is infinite
        try:
            return float(node.value)
        except OverflowError:
            return math.inf

    def interpret(self):
        return fold_tree(self.tree, self.visit, self.operate)


def evaluate(node):
    """precondition: is_numerical(node)
    """
    return Interpreter(node).interpret()


###############################################################################
#                                                                             #
#  DISPLAYER                                                                  #
#                                                                             #
###############################################################################

class Displayer(NodeVisitor):
    def __init__(self, tree) -> None:
        self.tree = tree

    def pack_BinOp(self, node: BinOp, left, right):
        data = {
            'name': f'{node.op.value}',
            'children': [left, right]
        }
        return data

    def visit_Var(self, node: Var):
        data = {
            'name': f'{node.value}',
        }
        return data

    def visit_Num(self, node: Num):
        data = {
            'name': f'{str(node.value)}'
        }
        return data

    def pack(self):
        return fold_tree(self.tree, self.visit, self.pack_BinOp)

    def display(self, filename='Tree.html'):
        data = self.pack()
        (
            Tree(init_opts=opts.InitOpts(page_title='Tree'))
            .add(
                series_name="",  # name
                data=[data],  # data
                initial_tree_depth=-1,  # all expand
                orient="TB",  # top-to-bottom
                label_opts=opts.LabelOpts(
                    position="top",
                    vertical_align="middle",
                ),
            )
            .set_global_opts(title_opts=opts.TitleOpts(title="Tree"))
            .render(filename)
        )
        # modify js reference to local
        if LOCAL_ECHARTS:
            with open(filename, 'r') as fin:
                content = fin.read()
            with open(filename, 'w') as fout:
                fout.write(content.replace(CurrentConfig.ONLINE_HOST, ''))
        return filename


###############################################################################
#                                                                             #
#   MAIN                                                                      #
#                                                                             #
###############################################################################

def process_line(text, display_ast=False):
    """the dialogue lines for one input line
    """
    tokens = token_list(text)
    lines = [format_tokens(tokens)]

    try:
        tree = parse(tokens)
    except ParserError:
        lines.append('this is not an expression')
        return lines

    lines.append(f'in infix notation: {render_infix(tree)}')
    numerical = is_numerical(tree)
    tree = simplify(tree)
    if numerical:
        lines.append(f'the value is {evaluate(tree):g}')
    else:
        lines.append('this is not a numerical expression')
    lines.append(f'simplified: {render_infix(tree)}')

    if display_ast:
        Displayer(tree).display()

    free_tree(tree)
    return lines


def repl(display_ast=False):
    while True:
        try:
            text = input(PROMPT)
        except (EOFError, KeyboardInterrupt):
            break
        if text.startswith(STOP_CHAR):
            break

        for line in process_line(text, display_ast):
            print(line)
        print()

    print('good bye')


def main(argv=None):
    global _SHOULD_LOG_TOKENS
    global _SHOULD_LOG_SIMPLIFY
    global LOCAL_ECHARTS

    parser = argparse.ArgumentParser(description='infixexp - infix expression interpreter')
    parser.add_argument('--tokens', action='store_true', help='Print every token read')
    parser.add_argument('--simplify', action='store_true', help='Print every simplification step')
    parser.add_argument('--ast', action='store_true', help='Render the simplified tree to Tree.html')
    parser.add_argument('--local-echarts', action='store_true', help='Load echarts.min.js next to Tree.html')
    args = parser.parse_args(argv)

    _SHOULD_LOG_TOKENS = args.tokens
    _SHOULD_LOG_SIMPLIFY = args.simplify
    LOCAL_ECHARTS = args.local_echarts

    repl(display_ast=args.ast)


if __name__ == '__main__':
    main()
