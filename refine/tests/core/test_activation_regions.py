# vim: set noexpandtab: -*- indent-tabs-mode: t -*-
from __future__ import annotations

import pytest

from refine.activation import ActivationManager, RegionState
from refine.core.errors import InactiveRegionError
from refine.core.types_core import Instance
from refine.scope_stack import ScopeKind


def _animal_world() -> tuple[ActivationManager, int, int]:
	mgr = ActivationManager()
	animal = mgr.types.new_class("Animal")
	dog = mgr.types.new_class("Dog", animal)
	mgr.define_method(animal, "speak", lambda call, self: "...")
	return mgr, animal, dog


def test_region_exit_pops_every_frame() -> None:
	mgr, animal, _dog = _animal_world()
	a = mgr.define_overrides([(animal, "speak", lambda call, self: "a")])
	b = mgr.define_overrides([(animal, "speak", lambda call, self: "b")])
	with mgr.region() as r:
		r.activate(a)
		r.activate(b)
		assert len(mgr.stack) == 2
		assert [f.override_set for f in r.frames] == [a, b]
	assert len(mgr.stack) == 0
	assert r.state is RegionState.CLOSED
	with mgr.region():
		assert mgr.dispatch(Instance(animal), "speak") == "..."


def test_region_pops_on_error_unwind() -> None:
	mgr, animal, _dog = _animal_world()
	a = mgr.define_overrides([(animal, "speak", lambda call, self: "a")])
	with pytest.raises(ValueError):
		with mgr.region() as r:
			r.activate(a)
			raise ValueError("early exit")
	assert len(mgr.stack) == 0
	assert mgr.current_region() is None
	assert mgr.dispatch(Instance(animal), "speak") == "..."


def test_subclass_propagation_survives_the_defining_region() -> None:
	mgr, animal, dog = _animal_world()
	s2 = mgr.define_overrides([(animal, "speak", lambda call, self: "WOOF")], label="S2")

	# "file one": define Dog with S2 active.
	with mgr.region(ScopeKind.FILE):
		with mgr.region(ScopeKind.CLASS, defining=dog) as body:
			body.activate(s2)

	# "file two": no activation at all.
	with mgr.region(ScopeKind.FILE):
		assert mgr.dispatch(Instance(dog), "speak") == "WOOF"
		assert mgr.dispatch(Instance(animal), "speak") == "..."


def test_sticky_sets_reach_subtypes_of_the_defining_type() -> None:
	mgr, animal, dog = _animal_world()
	puppy = mgr.types.new_class("Puppy", dog)
	s2 = mgr.define_overrides([(animal, "speak", lambda call, self: "WOOF")])
	with mgr.region(ScopeKind.CLASS, defining=dog) as body:
		body.activate(s2)
	assert mgr.dispatch(Instance(puppy), "speak") == "WOOF"
	assert mgr.sticky_sets(puppy) == (s2,)
	assert mgr.sticky_sets(animal) == ()


def test_nested_non_method_regions_inherit_the_defining_type() -> None:
	mgr, animal, dog = _animal_world()
	s = mgr.define_overrides([(animal, "speak", lambda call, self: "nested")])
	with mgr.region(ScopeKind.CLASS, defining=dog):
		with mgr.region(ScopeKind.MODULE) as inner:
			inner.activate(s)
	assert mgr.sticky.for_type(dog) == (s,)


def test_method_regions_do_not_attach() -> None:
	mgr, animal, dog = _animal_world()
	s = mgr.define_overrides([(animal, "speak", lambda call, self: "method")])
	with mgr.region(ScopeKind.CLASS, defining=dog):
		with mgr.region(ScopeKind.METHOD) as body:
			body.activate(s)
			assert mgr.dispatch(Instance(dog), "speak") == "method"
	assert mgr.sticky.for_type(dog) == ()
	assert mgr.dispatch(Instance(dog), "speak") == "..."


def test_nested_defining_region_attaches_to_the_inner_type() -> None:
	mgr, animal, dog = _animal_world()
	cat = mgr.types.new_class("Cat", animal)
	s = mgr.define_overrides([(animal, "speak", lambda call, self: "meow")])
	with mgr.region(ScopeKind.CLASS, defining=dog):
		with mgr.region(ScopeKind.CLASS, defining=cat) as inner:
			inner.activate(s)
	assert mgr.sticky.for_type(cat) == (s,)
	assert mgr.sticky.for_type(dog) == ()
	assert mgr.dispatch(Instance(cat), "speak") == "meow"
	assert mgr.dispatch(Instance(dog), "speak") == "..."


def test_reenter_pushes_sticky_sets_for_the_body_only() -> None:
	mgr, animal, dog = _animal_world()
	cat = mgr.types.new_class("Cat", animal)
	s = mgr.define_overrides([(animal, "speak", lambda call, self: "WOOF")])
	with mgr.region(ScopeKind.CLASS, defining=dog) as body:
		body.activate(s)

	cat_obj = Instance(cat)
	assert mgr.dispatch(cat_obj, "speak") == "..."
	with mgr.reenter(dog) as region:
		assert region.kind is ScopeKind.CLASS
		# Calling-context frames apply to any receiver.
		assert mgr.dispatch(cat_obj, "speak") == "WOOF"
	assert mgr.dispatch(cat_obj, "speak") == "..."
	assert len(mgr.stack) == 0


def test_reenter_does_not_attach_to_an_enclosing_defining_type() -> None:
	mgr, animal, dog = _animal_world()
	cat = mgr.types.new_class("Cat", animal)
	s = mgr.define_overrides([(animal, "speak", lambda call, self: "WOOF")])
	with mgr.region(ScopeKind.CLASS, defining=dog) as body:
		body.activate(s)
	with mgr.region(ScopeKind.CLASS, defining=cat):
		with mgr.reenter(dog):
			pass
	assert mgr.sticky.for_type(cat) == ()


def test_evaluate_in_combines_captured_frames_and_type_context() -> None:
	mgr, animal, dog = _animal_world()
	counter = mgr.types.new_class("Counter")
	mgr.define_method(counter, "increment", lambda call, self, n: n + 1)
	loud = mgr.define_overrides([(animal, "speak", lambda call, self: "WOOF")])
	plus_two = mgr.define_overrides([(counter, "increment", lambda call, self, n: n + 2)])
	with mgr.region(ScopeKind.CLASS, defining=dog) as body:
		body.activate(loud)

	cat = Instance(mgr.types.new_class("Cat", animal))
	with mgr.region() as r:
		r.activate(plus_two)
		block = mgr.capture(
			lambda n: (mgr.dispatch(cat, "speak"), mgr.dispatch(Instance(counter), "increment", n))
		)

	assert block.frames[0].override_set is plus_two
	assert len(mgr.stack) == 0
	assert mgr.evaluate_in(dog, block, 1) == ("WOOF", 3)
	# Neither the captured frames nor the re-entered sets outlive the call.
	assert mgr.dispatch(cat, "speak") == "..."
	assert mgr.dispatch(Instance(counter), "increment", 1) == 2


def test_lexical_capture_by_define_method() -> None:
	mgr, animal, dog = _animal_world()
	s = mgr.define_overrides([(animal, "speak", lambda call, self: "WOOF")])
	with mgr.region(ScopeKind.FILE) as r:
		r.activate(s)
		mgr.define_method(dog, "bark", lambda call, self: call.dispatch(self, "speak"))
	# `bark` was defined where `s` was active; its body still sees `s`.
	assert mgr.dispatch(Instance(dog), "bark") == "WOOF"
	assert mgr.dispatch(Instance(dog), "speak") == "..."


def test_activate_outside_any_region_fails() -> None:
	mgr, animal, _dog = _animal_world()
	s = mgr.define_overrides([(animal, "speak", lambda call, self: "x")])
	with pytest.raises(InactiveRegionError) as excinfo:
		mgr.activate(s)
	assert excinfo.value.reason_code == "inactive-region"


def test_activate_into_outer_region_from_inner_fails() -> None:
	mgr, animal, _dog = _animal_world()
	s = mgr.define_overrides([(animal, "speak", lambda call, self: "x")])
	with mgr.region() as outer:
		with mgr.region():
			with pytest.raises(InactiveRegionError):
				outer.activate(s)
		assert outer.activate(s) is True


def test_closed_region_cannot_be_reused() -> None:
	mgr, animal, _dog = _animal_world()
	s = mgr.define_overrides([(animal, "speak", lambda call, self: "x")])
	with mgr.region() as r:
		assert r.state is RegionState.ACTIVE
	with pytest.raises(InactiveRegionError):
		r.activate(s)
	with pytest.raises(InactiveRegionError):
		r._enter()


def test_manager_activate_targets_innermost_region() -> None:
	mgr, animal, _dog = _animal_world()
	s = mgr.define_overrides([(animal, "speak", lambda call, self: "x")])
	with mgr.region() as outer:
		with mgr.region(ScopeKind.MODULE) as inner:
			assert mgr.current_region() is inner
			assert mgr.activate(s) is True
			assert inner.frames and not outer.frames
		assert len(mgr.stack) == 0


def test_implementation_body_cannot_activate_into_callers_region() -> None:
	mgr, animal, _dog = _animal_world()
	s = mgr.define_overrides([(animal, "speak", lambda call, self: "x")])
	mgr.define_method(animal, "sneaky", lambda call, self: mgr.activate(s))
	with mgr.region():
		with pytest.raises(InactiveRegionError):
			mgr.dispatch(Instance(animal), "sneaky")
