from __future__ import annotations

import pytest

from refine.core.errors import DuplicateOverrideError, InvalidTargetError, NoMethodError
from refine.refc.interp import Interpreter, RefcRuntimeError
from refine.refc.parser import parse_program


def _run(*sources: str, max_call_depth: int = 64) -> list[str]:
	interp = Interpreter(max_call_depth=max_call_depth)
	for idx, src in enumerate(sources):
		interp.run_program(parse_program(src), file=f"f{idx}.rfn")
	return interp.output


def test_counter_override_applies_after_using() -> None:
	out = _run(
		"""
class Counter {
	def initialize() { @n = 0; }
	def incr() { @n = @n + 1; return @n; }
}
overrides Twice {
	on Counter { def incr() { super(); return super(); } }
}
let c = Counter.new();
print(c.incr());
using Twice;
print(c.incr());
"""
	)
	assert out == ["1", "3"]


def test_file_level_using_ends_with_the_file() -> None:
	out = _run(
		"""
class C { def f() { return "base"; } }
overrides O { on C { def f() { return "over"; } } }
using O;
print(C.new().f());
""",
		"print(C.new().f());",
	)
	assert out == ["over", "base"]


def test_class_body_using_sticks_to_subclasses_across_files() -> None:
	out = _run(
		"""
class Animal { def speak() { return "..."; } }
overrides Loud { on Animal { def speak() { return "WOOF"; } } }
class Dog < Animal { using Loud; }
class Puppy < Dog { }
""",
		"""
print(Dog.new().speak(), Puppy.new().speak(), Animal.new().speak());
""",
	)
	assert out == ["WOOF WOOF ..."]


def test_no_local_rebinding() -> None:
	out = _run(
		"""
class Counter {
	def initialize() { @n = 0; }
	def incr() { @n = @n + 1; return @n; }
	def incr_twice() { self.incr(); return self.incr(); }
}
overrides ByTwo { on Counter { def incr() { @n = @n + 2; return @n; } } }
using ByTwo;
let c = Counter.new();
print(c.incr());
print(c.incr_twice());
"""
	)
	assert out == ["2", "4"]


def test_method_level_using_lasts_until_return() -> None:
	out = _run(
		"""
overrides Shout { on String { def upcase() { return "LOUD"; } } }
class Box {
	def loud(s) { using Shout; return s.upcase(); }
	def quiet(s) { return s.upcase(); }
}
let b = Box.new();
print(b.loud("a"), b.quiet("a"), "x".upcase());
"""
	)
	assert out == ["LOUD A X"]


def test_siblings_in_one_set_see_each_other() -> None:
	out = _run(
		"""
class Dog { def speak() { return "..."; } def shout() { return "base"; } }
overrides Loud {
	on Dog {
		def speak() { return "woof"; }
		def shout() { return self.speak().upcase(); }
	}
}
let d = Dog.new();
using Loud;
print(d.shout());
"""
	)
	assert out == ["WOOF"]


def test_super_chains_through_every_active_set() -> None:
	out = _run(
		"""
class Num { def value() { return 1; } }
overrides AddTen { on Num { def value() { return super() + 10; } } }
overrides Double { on Num { def value() { return super() * 2; } } }
using AddTen;
using Double;
print(Num.new().value());
"""
	)
	assert out == ["22"]


def test_class_level_methods_need_meta_targets() -> None:
	out = _run(
		"""
class Counter { def self.make() { return 1; } }
overrides Meta { on meta Counter { def make() { return 2; } } }
overrides Inst { on Counter { def make() { return 3; } } }
print(Counter.make());
using Inst;
print(Counter.make());
using Meta;
print(Counter.make());
"""
	)
	assert out == ["1", "1", "2"]


def test_eval_in_reenters_the_class_context() -> None:
	out = _run(
		"""
class Dog { }
overrides Loud { on Int { def succ() { return 100; } } }
class Dog { using Loud; }
print(1.succ());
eval_in Dog { print(1.succ()); }
print(1.succ());
"""
	)
	assert out == ["2", "100", "2"]


def test_interface_methods_and_include() -> None:
	out = _run(
		"""
interface Named { def label() { return "named " + self.kind(); } }
class Cat { include Named; def kind() { return "cat"; } }
print(Cat.new().label(), Cat.new(), Cat);
"""
	)
	assert out == ["named cat #<Cat> Cat"]


def test_interface_is_not_an_override_target() -> None:
	with pytest.raises(InvalidTargetError) as excinfo:
		_run(
			"""
interface Named { def label() { return "n"; } }
overrides Bad { on Named { def label() { return "x"; } } }
"""
		)
	assert excinfo.value.span.line == 3
	assert excinfo.value.span.file == "f0.rfn"


def test_duplicate_override_in_one_set() -> None:
	with pytest.raises(DuplicateOverrideError):
		_run(
			"""
class A { def f() { return 1; } }
overrides Dup { on A { def f() { return 1; } def f() { return 2; } } }
"""
		)


def test_undefined_method_is_pinned_at_the_call() -> None:
	with pytest.raises(NoMethodError) as excinfo:
		_run("class Cat { }\nCat.new().bark();")
	err = excinfo.value
	assert err.method_name == "bark"
	assert (err.span.line, err.span.column) == (2, 11)


def test_builtins_operators_and_control_flow() -> None:
	out = _run(
		"""
let x = 5;
if x > 3 { print("big"); } else { print("small"); }
if x > 10 { print("huge"); } else if x == 5 { print("five"); }
print(true, nil, 1 == 1, "a" + "b", 7 / 2, -7 % 3, !nil, 1 == true);
print("abc".reverse().upcase(), "Hi".length(), (-4).abs(), 3.pred());
x = x.succ();
print(x);
"""
	)
	assert out == ["big", "five", "true nil true ab 3 2 true false", "CBA 2 4 2", "6"]


def test_initialize_receives_new_arguments() -> None:
	out = _run(
		"""
class Point {
	def initialize(x, y) { @x = x; @y = y; }
	def sum() { return @x + @y; }
}
print(Point.new(2, 3).sum());
"""
	)
	assert out == ["5"]


@pytest.mark.parametrize(
	"source, needle",
	[
		("print(1 / 0);", "division by zero"),
		("x = 1;", "undeclared variable 'x'"),
		("print(y);", "undefined variable 'y'"),
		("print(1 + \"a\");", "unsupported operand types for +: Int and String"),
		("return 1;", "return outside of a method"),
		("using Nope;", "unknown override set 'Nope'"),
		("class A { def f(a) { return a; } }\nA.new().f();", "wrong number of arguments for 'f'"),
		("class A { }\nA.new(1);", "wrong number of arguments for 'new'"),
		("print(@x);", "field '@x'"),
	],
)
def test_runtime_errors(source: str, needle: str) -> None:
	with pytest.raises(RefcRuntimeError) as excinfo:
		_run(source)
	assert needle in excinfo.value.message
	assert excinfo.value.reason_code == "runtime"


def test_call_depth_limit() -> None:
	with pytest.raises(RefcRuntimeError) as excinfo:
		_run(
			"""
class R { def down(n) { return self.down(n + 1); } }
R.new().down(0);
""",
			max_call_depth=10,
		)
	assert "call depth limit exceeded (10)" in excinfo.value.message


def test_subclass_method_wins_over_active_ancestor_override() -> None:
	out = _run(
		"""
class Animal { def speak() { return "..."; } }
class Dog < Animal { def speak() { return "dog " + super(); } }
overrides Loud { on Animal { def speak() { return "WOOF"; } } }
using Loud;
print(Dog.new().speak(), Animal.new().speak());
"""
	)
	assert out == ["dog WOOF WOOF"]
