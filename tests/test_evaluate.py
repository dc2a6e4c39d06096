import re
import pytest
from sdflisp import read_one, evaluate, print_expr, make_root_env, DslParseError


def test_numbers_evaluate_to_themselves(basic_eval):
    assert basic_eval("42") == "42"
    assert basic_eval("#<1 2 3>") == "#<1 2 3>"

def test_unknown_identifier_is_error(basic_eval):
    assert basic_eval("nope") == "#error<Unknown identifier 'nope'>"

def test_error_keeps_span(env):
    result = evaluate(read_one("(+ 1 nope)"), env)
    assert result.type == 'error'
    assert (result.offset, result.length) == (5, 4)

def test_define_and_call(basic_eval):
    assert basic_eval("(define sq (lambda (x) (* x x))) (sq 4)") == "16"
    assert basic_eval("(define add (a b) (+ a b)) (add 2 3)") == "5"

def test_lambda_with_several_body_forms(basic_eval):
    assert basic_eval("((lambda (x) (define y 2) (* x y)) 5)") == "10"

def test_lambda_arity_error(basic_eval):
    assert basic_eval("((lambda (x) x) 1 2)") == "#error<lambda expected 1 args, got 2>"

def test_closures(basic_eval):
    source = """
    (define make-adder (lambda (n) (lambda (x) (+ x n))))
    (define add2 (make-adder 2))
    (add2 5)
    """
    assert basic_eval(source) == "7"

def test_set_mutates_enclosing_binding(basic_eval):
    assert basic_eval("(define a 1) ((lambda () (set! a 5))) a") == "5"

def test_builtins_cannot_be_redefined(basic_eval):
    assert basic_eval("(set! sin 1)") == "#error<Cannot mutate value of 'sin'>"

def test_user_definitions_can_shadow_builtins(basic_eval):
    assert basic_eval("(define pi 3) pi") == "3"

def test_if(basic_eval):
    assert basic_eval("(if () 2 3)") == "3"
    assert basic_eval("(if 0 2 3)") == "3"
    assert basic_eval("(if t 2)") == "2"
    assert basic_eval("(if 0 2)") == "()"

def test_if_with_placeholder_test(basic_eval):
    assert basic_eval("(if :x 2 3)") == "(placeholder (if :x 2 3))"

def test_if_with_placeholder_branch(basic_eval):
    assert basic_eval("(if t :x 2)") == ":x"

def test_let_scope_does_not_leak(basic_eval):
    assert basic_eval("(let ((a 1) (b 2)) (+ a b))") == "3"
    assert basic_eval("(let ((a 1)) a) a") == "#error<Unknown identifier 'a'>"

def test_begin_returns_last(basic_eval):
    assert basic_eval("(begin 1 2 3)") == "3"

def test_quote(basic_eval):
    assert basic_eval("'(a b c)") == "(a b c)"
    assert basic_eval("'x") == "x"

def test_quasi_quote(basic_eval):
    assert basic_eval("`(a ,(+ 1 2) ,@(list 4 5))") == "(a 3 4 5)"

def test_quasi_quote_with_placeholder(basic_eval):
    assert basic_eval("`(+ 1 2 ,(- :x 1))") == "(+ 1 2 (placeholder (- :x 1)))"

def test_unquote_splicing_requires_list(basic_eval):
    assert "can only splice a list" in basic_eval("`(a ,@1)")

def test_not_callable(basic_eval):
    assert basic_eval("(1 2)") == "#error<1 is not callable>"


# --- Placeholders ---

def test_placeholder_defers_arithmetic(basic_eval):
    assert basic_eval("(+ 1 :x 2)") == "(placeholder (+ 1 :x 2))"

def test_placeholder_nested_arithmetic(basic_eval):
    assert basic_eval("(+ (* :x :x) (* 3 3))") == "(placeholder (+ (* :x :x) 9))"

def test_placeholder_vector(basic_eval):
    assert basic_eval(":(vec view)") == "(placeholder (vec :view.x :view.y :view.z))"

def test_invalid_placeholder(basic_eval):
    assert basic_eval("(placeholder 1)") == "#error<1 is not a valid placeholder arg>"

def test_lambda_recaptures_parameters(basic_eval):
    assert basic_eval("((lambda (x) (if x x 0)) :y)") == "(placeholder (let ((x :y)) (if :y x 0)))"

def test_lambda_without_unresolved_parameters(basic_eval):
    assert basic_eval("((lambda (x) (+ x :y)) 2)") == "(placeholder (+ 2 :y))"

def test_and_with_placeholder(basic_eval):
    result = basic_eval("(and 1 2 :x 0)")
    assert re.fullmatch(r"\(placeholder \(let \(\((%and\d+) :x\)\) \(if :x \(and 0\) \1\)\)\)", result)

def test_set_with_placeholder(basic_eval):
    source = "(begin (define p 2) (define q (+ p 1)) (set! p :p) (+ q p))"
    assert basic_eval(source) == "(placeholder (+ 3 :p))"

def test_shape_with_placeholder(basic_eval):
    assert basic_eval("(shape ellipsoid #<0 0 0> :r)") == "(placeholder (shape ellipsoid #<0 0 0> :r))"

def test_error_wins_over_placeholder(basic_eval):
    assert basic_eval("(+ :x nope)") == "#error<Unknown identifier 'nope'>"


# --- Macros ---

def test_and_or(basic_eval):
    assert basic_eval("(and 1 2 3)") == "3"
    assert basic_eval("(and 1 0 3)") == "0"
    assert basic_eval("(or 0 () 4)") == "4"
    assert basic_eval("(or 0)") == "0"

def test_and_or_keep_user_bindings(basic_eval):
    assert basic_eval("(let ((aa 5)) (and 1 aa))") == "5"
    assert basic_eval("(let ((tmp 5)) (and 1 tmp))") == "5"
    assert basic_eval("(let ((oo 0) (tmp 3)) (or oo tmp))") == "3"

def test_gensym(basic_eval):
    first, second = basic_eval("(list (gensym 'v) (gensym 'v))")[1:-1].split()
    assert first != second
    assert first.startswith('%v')
    with pytest.raises(DslParseError):
        basic_eval(f"'{first}")

def test_macro_arity(basic_eval):
    assert basic_eval("(lerp 1 2)") == "#error<lerp expected 3 args, got 2>"

def test_sphere_macro(basic_eval):
    assert basic_eval("(sphere #<0 1 0> 2)") == "#shape<ellipsoid: #<0 1 0> #<2 2 2>>"

def test_combinator_macros(basic_eval):
    assert basic_eval("(union (box #<0 0 0> 1))") == "#shape<union: #shape<box: #<0 0 0> #<1 1 1>>>"
    assert basic_eval("(smooth 0.2 (box #<0 0 0> 1))") == \
        "#shape<smooth: 0.2 #shape<union: #shape<box: #<0 0 0> #<1 1 1>>>>"


# --- smoothcase ---

@pytest.fixture
def smoothcase():
    env = make_root_env()

    def _at(value):
        expr = read_one(f"(smoothcase {value} ((0 1) 10) ((2 3) 20))")
        return print_expr(evaluate(expr, env))
    return _at

def test_smoothcase_inside_cases(smoothcase):
    assert smoothcase(0.5) == "10"
    assert smoothcase(2.5) == "20"

def test_smoothcase_blends_between_cases(smoothcase):
    assert smoothcase(1.5) == "15"

def test_smoothcase_outside_cases(smoothcase):
    assert smoothcase(-1) == "10"
    assert smoothcase(0) == "10"
    assert smoothcase(3) == "20"
    assert smoothcase(10) == "20"

def test_smoothcase_single_value_heads(basic_eval):
    assert basic_eval("(smoothcase 0.5 ((0) 10) ((1) 20))") == "15"

def test_smoothcase_vectors(basic_eval):
    assert basic_eval("(smoothcase #<0.5 1.5 4> ((0 1) 10) ((2 3) 20))") == "#<10 15 20>"

def test_smoothcase_with_placeholder(basic_eval):
    assert basic_eval("(smoothcase :x ((0 1) 10) ((2 3) 20))") == \
        "(placeholder (smoothcase :x ((0 1) 10) ((2 3) 20)))"

def test_smoothcase_order(basic_eval):
    assert "ordered" in basic_eval("(smoothcase 1 ((2 3) 10) ((0 1) 20))")
    assert "ordered" in basic_eval("(smoothcase 1 ((1 0) 10))")
    assert "ordered" in basic_eval("(smoothcase 1 ((0 3) 10) ((0 2) 20))")

def test_smoothcase_overlapping_cases(basic_eval):
    assert basic_eval("(smoothcase 1.5 ((0 2) 10) ((1 3) 20))") == "10"
    assert basic_eval("(smoothcase 2.5 ((0 2) 10) ((1 3) 20))") == "20"

def test_smoothcase_structure(basic_eval):
    assert "must be a list" in basic_eval("(smoothcase 1 2)")
    assert "length 2" in basic_eval("(smoothcase 1 ((0 1) 2 3))")
