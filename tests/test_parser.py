import gc
import weakref

import pytest

import infixexp
from infixexp import (
    BinOp, Num, ParserError, Position, Token, TokenType, Var,
    free_tree, is_numerical, iter_infix, new_node, parse, parse_expression,
    render_infix, token_list,
)


def build(text):
    return parse(token_list(text))


@pytest.mark.parametrize('text, expected', [
    ('1+2*3', '(1 + (2 * 3))'),
    ('3 + 4 * 2', '(3 + (4 * 2))'),
    ('(2+3)*4', '((2 + 3) * 4)'),
    ('8-3-2', '((8 - 3) - 2)'),
    ('8/4/2', '((8 / 4) / 2)'),
    ('a*b+c/d', '((a * b) + (c / d))'),
    ('(((x)))', 'x'),
    ('42', '42'),
    ('x1 - (y + 2) * z', '(x1 - ((y + 2) * z))'),
])
def test_precedence_and_associativity(text, expected):
    assert render_infix(build(text)) == expected


def test_expression_consumes_every_token():
    tree, remaining = parse_expression(token_list('3 + 4 * 2'))
    assert remaining == []
    assert isinstance(tree, BinOp)
    assert tree.op.value == '+'


def test_parse_expression_leaves_trailing_tokens():
    tree, remaining = parse_expression(token_list('1 2'))
    assert isinstance(tree, Num)
    assert tree.value == 1
    assert [t.value for t in remaining] == [2]


@pytest.mark.parametrize('text', [
    '',
    '(1+2',
    '1 2',
    '1+',
    '*3',
    ')',
    '()',
    '(1+2))',
    '1 $ 2',
    '1 + * 2',
    'x (y)',
])
def test_rejected_input(text):
    with pytest.raises(ParserError):
        build(text)


def test_error_position_and_message():
    with pytest.raises(ParserError) as excinfo:
        build('1 +')
    assert excinfo.value.position == Position(1, 3)
    assert str(excinfo.value) == 'ParserError: <1:3>: input ends too early, want `factor`'


def test_error_on_missing_paren_names_token():
    with pytest.raises(ParserError) as excinfo:
        build('(1 2')
    assert excinfo.value.position == Position(1, 3)
    assert excinfo.value.message == 'token `2` is not expected, want `)`'


def test_trailing_token_message():
    with pytest.raises(ParserError) as excinfo:
        build('1 2')
    assert excinfo.value.message == 'token `2` is left after the expression'


def _track_nodes(monkeypatch):
    created = []
    real_new_node = infixexp.new_node

    def tracking_new_node(*args, **kwargs):
        node = real_new_node(*args, **kwargs)
        created.append(node)
        return node

    monkeypatch.setattr(infixexp, 'new_node', tracking_new_node)
    return created


def _fails(text):
    try:
        build(text)
    except ParserError:
        return True
    return False


@pytest.mark.parametrize('text', ['(1+2', '1*2+(3', '1+2*', '(a-b)*(c', '1 2', '(1+2)*3 4'])
def test_failed_parse_releases_partial_trees(monkeypatch, text):
    created = _track_nodes(monkeypatch)
    assert _fails(text)
    assert created
    for node in created:
        if isinstance(node, BinOp):
            assert node.left is None
            assert node.right is None


def test_failed_parse_leaks_no_nodes(monkeypatch):
    created = _track_nodes(monkeypatch)
    assert _fails('(1+2')
    refs = [weakref.ref(node) for node in created]
    created.clear()
    gc.collect()
    assert refs
    assert all(ref() is None for ref in refs)


def test_round_trip_tree_shape():
    for text in ['1+2*3', '(a+b)*(c-d)/e', '1-(2-3)', 'x']:
        rendered = render_infix(build(text))
        assert render_infix(build(rendered)) == rendered


def test_new_node_variants():
    num = new_node(TokenType.NUMBER, Token(TokenType.NUMBER, 3, Position(1, 0)))
    var = new_node(TokenType.IDENTIFIER, Token(TokenType.IDENTIFIER, 'x', Position(1, 4)))
    op = new_node(TokenType.SYMBOL, Token(TokenType.SYMBOL, '+', Position(1, 2)), num, var)
    assert isinstance(num, Num) and num.value == 3
    assert isinstance(var, Var) and var.value == 'x'
    assert isinstance(op, BinOp)
    assert op.left is num and op.right is var
    assert render_infix(op) == '(3 + x)'


def test_new_node_rejects_eof():
    with pytest.raises(ValueError):
        new_node(TokenType.EOF, Token(TokenType.EOF, None, Position(1, 0)))


def test_free_tree():
    free_tree(None)
    tree = build('(x+1)*y')
    inner = tree.left
    name_token = inner.left.token
    free_tree(tree)
    assert tree.left is None and tree.right is None
    assert inner.left is None and inner.right is None
    assert name_token.value == 'x'


def test_is_numerical():
    assert not is_numerical(build('2+x'))
    assert is_numerical(build('2+3'))
    assert is_numerical(build('7'))
    assert not is_numerical(build('y'))
    assert not is_numerical(build('(1*2)/(3-(4+z))'))


def test_iter_infix_is_lazy():
    fragments = iter_infix(build('1+2'))
    assert next(fragments) == '('
    assert next(fragments) == '1'
    assert next(fragments) == ' + '


def test_render_empty_tree():
    assert render_infix(None) == ''


def test_nesting_limit():
    depth = infixexp.MAX_NESTING
    assert render_infix(build('(' * depth + 'x' + ')' * depth)) == 'x'

    with pytest.raises(ParserError) as excinfo:
        build('(' * (depth + 1) + 'x' + ')' * (depth + 1))
    assert excinfo.value.position == Position(1, depth)
    assert excinfo.value.message == f'parentheses nested deeper than {depth}'


def test_nesting_limit_releases_partial_trees(monkeypatch):
    created = _track_nodes(monkeypatch)
    depth = infixexp.MAX_NESTING
    assert _fails('(1+1)+(' * (depth + 1) + '1' + ')' * (depth + 1))
    assert any(isinstance(node, BinOp) for node in created)
    for node in created:
        if isinstance(node, BinOp):
            assert node.left is None
            assert node.right is None


def test_long_left_chain_walks():
    tree = build('1' + '-x' * 3000)
    assert not is_numerical(tree)
    assert render_infix(tree).startswith('(' * 3000 + '1 - x)')
    free_tree(tree)
    assert tree.left is None and tree.right is None
