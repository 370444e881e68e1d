# vim: set noexpandtab: -*- indent-tabs-mode: t -*-
# author: Sławomir Liszniański; created: 2026-10-18
"""
Text CFG front end: lark parse tree -> BodyBuilder calls -> FunctionBody.

The grammar lives next to this file (grammar.lark). Tree walking is manual
and keyed on rule names; facts are never derived here, only by the builder.

Region resolution:
  - regions named in parameter types and in the `where` clause of a function
    are universal (they come from the caller)
  - `'static` is universal
  - any other region is a local inference variable, introduced on first use
    in a `let` type
"""

from __future__ import annotations

from pathlib import Path
from typing import Dict, List, Optional, Tuple

from lark import Lark, Token, Tree

from loanck.builder import BlockBuilder, BodyBuilder, Operand
from loanck.cfg import FunctionBody
from loanck.core.span import Span
from loanck.places import DerefProj, FieldProj, IndexKind, IndexProj, Place
from loanck.types import STATIC, AdtTy, RefTy, Region, ScalarTy, Ty

_GRAMMAR_PATH = Path(__file__).with_name("grammar.lark")
_GRAMMAR_SRC = _GRAMMAR_PATH.read_text()

_PARSER = Lark(
	_GRAMMAR_SRC,
	parser="lalr",
	lexer="basic",
	start="start",
	propagate_positions=True,
	maybe_placeholders=False,
)


class CfgSyntaxError(ValueError):
	"""
	User-facing error found while walking a syntactically valid tree
	(duplicate function, malformed branch, stray region).

	The driver converts this into a pinned parser-phase diagnostic.
	"""

	def __init__(self, message: str, *, loc: object | None) -> None:
		super().__init__(message)
		self.loc = loc


def parse_tree(source: str) -> Tree:
	"""Raw lark parse; raises lark's UnexpectedInput on malformed text."""
	return _PARSER.parse(source)


def build_bodies(tree: Tree, *, path: Optional[str] = None) -> List[FunctionBody]:
	"""Turn a parsed file into FunctionBody values, in source order."""
	bodies: List[FunctionBody] = []
	seen: Dict[str, Span] = {}
	for child in tree.children:
		if not isinstance(child, Tree) or _name(child) != "function":
			continue
		body = _FunctionWalker(child, path).build()
		if body.name in seen:
			raise CfgSyntaxError(
				f"function '{body.name}' defined twice (first at {seen[body.name].render()})",
				loc=body.span,
			)
		seen[body.name] = body.span
		bodies.append(body)
	return bodies


class _FunctionWalker:
	"""Walks one `function` subtree into a BodyBuilder."""

	def __init__(self, tree: Tree, path: Optional[str]) -> None:
		self.tree = tree
		self.path = path
		name_tok = tree.children[0]
		self.builder = BodyBuilder(str(name_tok), span=self._span(tree))

	def build(self) -> FunctionBody:
		params: List[Tree] = []
		where: Optional[Tree] = None
		items: List[Tree] = []
		for child in self.tree.children[1:]:
			kind = _name(child)
			if kind == "param":
				params.append(child)
			elif kind == "where_clause":
				where = child
			else:
				items.append(child)

		# Caller-provided regions first, so `let` types resolve against them.
		for param in params:
			self.builder.param(str(param.children[0]), self._type(param.children[1], universal=True), loc=self._span(param))
		if where is not None:
			for sub, sup in self._bounds(where, universal=True):
				self.builder.bound(sub, sup, loc=self._span(where))

		# Declarations may follow the blocks that use them.
		for item in items:
			if _name(item) == "let_decl":
				self._let(item)
		for item in items:
			if _name(item) == "block":
				self._block(item)
		return self.builder.build()

	# Declarations

	def _let(self, tree: Tree) -> None:
		name = str(tree.children[0])
		loc = self._span(tree)
		ty = self._type(tree.children[1], universal=False)
		drops: Optional[List[Region]] = None
		if len(tree.children) > 2:
			drops = [self._known_region(tok) for tok in tree.children[2].children]
		self.builder.declare(name, ty, drops=drops, loc=loc)

	def _type(self, tree: Tree, *, universal: bool) -> Ty:
		kind = _name(tree)
		if kind == "ref_type":
			region = self._region(tree.children[0], universal=universal)
			mutable = len(tree.children) == 3
			return RefTy(region, self._type(tree.children[-1], universal=universal), mutable=mutable)
		if kind == "named_type":
			name = str(tree.children[0])
			args: List[Ty | Region] = []
			for arg in tree.children[1:]:
				inner = arg.children[0]
				if isinstance(inner, Token):
					args.append(self._region(inner, universal=universal))
				else:
					args.append(self._type(inner, universal=universal))
			# Uppercase names are aggregates (may have a destructor).
			if args or name[:1].isupper():
				return AdtTy(name, tuple(args))
			return ScalarTy(name)
		raise AssertionError(f"unexpected type node '{kind}' (parser bug)")

	def _region(self, tok: Token, *, universal: bool) -> Region:
		name = str(tok)
		if name == STATIC.name:
			return self.builder.region(name, universal=True, loc=self._tok_span(tok))
		known = self.builder.find_region(name)
		if known is not None:
			return known
		return self.builder.region(name, universal=universal, loc=self._tok_span(tok))

	def _known_region(self, tok: Token) -> Region:
		return self.builder.lookup_region(str(tok), loc=self._tok_span(tok))

	def _bounds(self, tree: Tree, *, universal: bool) -> List[Tuple[Region, Region]]:
		out: List[Tuple[Region, Region]] = []
		for bound in tree.children:
			sub_tok, sup_tok = bound.children
			if universal:
				out.append((self._region(sub_tok, universal=True), self._region(sup_tok, universal=True)))
			else:
				out.append((self._known_region(sub_tok), self._known_region(sup_tok)))
		return out

	# Blocks

	def _block(self, tree: Tree) -> None:
		name_tok = tree.children[0]
		blk = self.builder.block(str(name_tok), loc=self._tok_span(name_tok))
		blk.loc = self._span(tree)
		for stmt in tree.children[1:]:
			self._stmt(blk, stmt, fallback=blk.loc)

	def _stmt(self, blk: BlockBuilder, tree: Tree, *, fallback: Span) -> None:
		kind = _name(tree)
		span = self._span(tree, fallback=fallback)
		children = tree.children
		if kind == "borrow_stmt":
			mut = len(children) == 3
			blk.borrow(self._place(children[0]), self._place(children[-1]), mut=mut, span=span)
		elif kind == "assign_stmt":
			blk.assign(self._place(children[0]), self._operand(children[1]), span=span)
		elif kind == "call_stmt":
			dest = self._place(children[0])
			func = str(children[1])
			operands: List[Operand] = []
			where: List[Tuple[Region, Region]] = []
			for child in children[2:]:
				if _name(child) == "where_clause":
					where = self._bounds(child, universal=False)
				else:
					operands.append(self._operand(child))
			blk.call(dest, func, operands, where=where, span=span)
		elif kind == "use_stmt":
			blk.use(*(self._operand(c) for c in children), span=span)
		elif kind == "drop_stmt":
			blk.drop(str(children[0]), span=span)
		elif kind == "storage_dead_stmt":
			blk.storage_dead(str(children[0]), span=span)
		elif kind == "outlives_stmt":
			blk.outlives(self._known_region(children[0]), self._known_region(children[1]), span=span)
		elif kind == "nop_stmt":
			blk.nop(span=span)
		elif kind == "goto_term":
			blk.goto(str(children[0]), span=span)
		elif kind == "branch_term":
			cond: Optional[Operand] = None
			targets = [str(c) for c in children if isinstance(c, Token)]
			if children and isinstance(children[0], Tree):
				cond = self._operand(children[0])
			if len(targets) < 2:
				raise CfgSyntaxError("branch needs at least two targets (use goto for one)", loc=span)
			blk.branch(targets, cond=cond, span=span)
		elif kind == "return_term":
			blk.ret(span=span)
		elif kind == "unreachable_term":
			blk.unreachable(span=span)
		else:
			raise AssertionError(f"unexpected statement node '{kind}' (parser bug)")

	# Operands and places

	def _operand(self, tree: Tree) -> Operand:
		head = tree.children[0]
		if isinstance(head, Token):
			if head.type == "CONST":
				return Operand.const()
			if head.type == "MOVE":
				return Operand.move_of(self._place(tree.children[1]))
			return Operand.copy_of(self._place(tree.children[1]))
		# A bare place reads a copy.
		return Operand.copy_of(self._place(head))

	def _place(self, tree: Tree) -> Place:
		kind = _name(tree)
		if kind == "local":
			return Place(str(tree.children[0]))
		if kind == "deref":
			return self._place(tree.children[0]).with_projection(DerefProj())
		if kind == "field":
			return self._place(tree.children[0]).with_projection(FieldProj(str(tree.children[1])))
		if kind == "index_const":
			return self._place(tree.children[0]).with_projection(IndexProj(IndexKind.CONST, value=int(tree.children[1])))
		if kind == "index_var":
			return self._place(tree.children[0]).with_projection(IndexProj(IndexKind.ANY, var=str(tree.children[1])))
		raise AssertionError(f"unexpected place node '{kind}' (parser bug)")

	# Locations

	def _span(self, tree: Tree, *, fallback: Span | None = None) -> Span:
		meta = tree.meta
		if getattr(meta, "empty", True):
			return fallback or Span(file=self.path)
		return Span.from_loc(meta, file=self.path)

	def _tok_span(self, tok: Token) -> Span:
		return Span.from_loc(tok, file=self.path)


def _name(node: Tree | Token) -> str:
	if isinstance(node, Tree):
		data = node.data
		if isinstance(data, Token):
			return data.value
		return data
	if isinstance(node, Token):
		return node.type
	return str(node)


__all__ = ["CfgSyntaxError", "parse_tree", "build_bodies"]
