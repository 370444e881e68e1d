# vim: set noexpandtab: -*- indent-tabs-mode: t -*-
# author: Sławomir Liszniański; created: 2026-10-18
"""Region extraction and type relating."""

import pytest

from loanck.test_support import I32, ref
from loanck.types import STATIC, AdtTy, Region, TypeShapeError, has_drop_glue, regions_of, relate_types

A = Region("'a")
B = Region("'b")
C = Region("'c")
D = Region("'d")


def test_regions_outermost_first_without_duplicates():
	assert regions_of(ref(A, ref(B))) == (A, B)
	assert regions_of(AdtTy("Pair", (ref(A), A, ref(B)))) == (A, B)
	assert regions_of(I32) == ()


def test_shared_reference_is_covariant():
	assert relate_types(ref(A), ref(B)) == [(A, B)]
	assert relate_types(ref(A, ref(C)), ref(B, ref(D))) == [(A, B), (C, D)]


def test_mutable_reference_referent_is_invariant():
	edges = relate_types(ref(A, ref(C), mut=True), ref(B, ref(D), mut=True))
	assert edges == [(A, B), (C, D), (D, C)]


def test_aggregate_arguments_relate_pairwise():
	assert relate_types(AdtTy("Vec", (ref(A),)), AdtTy("Vec", (ref(B),))) == [(A, B)]


def test_same_region_yields_no_edge():
	assert relate_types(ref(A), ref(A)) == []


def test_shape_mismatches_raise():
	with pytest.raises(TypeShapeError):
		relate_types(I32, ref(A))
	with pytest.raises(TypeShapeError, match="mutability"):
		relate_types(ref(A, mut=True), ref(B))
	with pytest.raises(TypeShapeError):
		relate_types(AdtTy("Vec", (ref(A),)), AdtTy("Box", (ref(B),)))


def test_drop_glue_and_static():
	assert has_drop_glue(AdtTy("Vec", (ref(A),)))
	assert not has_drop_glue(ref(A))
	assert not has_drop_glue(I32)
	assert STATIC.universal
	assert str(ref(A, mut=True)) == "&'a mut i32"
