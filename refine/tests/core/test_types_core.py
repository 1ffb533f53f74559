# vim: set noexpandtab: -*- indent-tabs-mode: t -*-
from __future__ import annotations

import pytest

from refine.core.types_core import ClassRef, Instance, TypeKind, TypeTable


def test_type_table_registers_classes_with_metaclasses() -> None:
	table = TypeTable()
	animal = table.new_class("Animal")
	dog = table.new_class("Dog", animal)

	assert table.get(dog).kind is TypeKind.CLASS
	assert table.get(dog).parent == animal
	meta = table.metaclass_of(dog)
	assert table.get(meta).kind is TypeKind.METACLASS
	assert table.get(meta).name == "Dog.class"
	assert table.get(meta).instance_type == dog
	# Metaclasses mirror the class hierarchy.
	assert table.get(meta).parent == table.metaclass_of(animal)
	assert table.lookup_name("Dog") == dog
	assert table.lookup_name("Dog.class") is None


def test_ancestors_are_nearest_first_with_interfaces() -> None:
	table = TypeTable()
	named = table.new_interface("Named")
	walker = table.new_interface("Walker")
	animal = table.new_class("Animal")
	dog = table.new_class("Dog", animal)
	table.include(animal, named)
	table.include(dog, walker)
	table.include(dog, named)
	table.include(dog, named)

	assert table.ancestors(dog) == (dog, named, walker, animal)
	assert table.is_subtype(dog, animal)
	assert table.is_subtype(dog, walker)
	assert not table.is_subtype(animal, dog)


def test_builtins_are_seeded_once() -> None:
	table = TypeTable()
	assert table.ensure_int() == table.ensure_int()
	assert table.get(table.ensure_string()).kind is TypeKind.BUILTIN
	assert table.get(table.metaclass_of(table.ensure_int())).name == "Int.class"


def test_type_of_maps_host_values() -> None:
	table = TypeTable()
	counter = table.new_class("Counter")
	assert table.type_of(Instance(counter)) == counter
	assert table.type_of(ClassRef(counter)) == table.metaclass_of(counter)
	assert table.type_of(3) == table.ensure_int()
	assert table.type_of(True) == table.ensure_bool()
	assert table.type_of("x") == table.ensure_string()
	assert table.type_of(None) == table.ensure_nil()
	with pytest.raises(TypeError):
		table.type_of(3.5)


def test_include_and_parent_kinds_are_checked() -> None:
	table = TypeTable()
	animal = table.new_class("Animal")
	named = table.new_interface("Named")
	with pytest.raises(TypeError):
		table.include(named, animal)
	with pytest.raises(TypeError):
		table.new_class("Broken", named)
	with pytest.raises(KeyError):
		table.metaclass_of(named)
