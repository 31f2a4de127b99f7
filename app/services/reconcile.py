"""Pure planning logic for parcel owner/cultivator reconciliation.

Everything here works on in-memory ``ParcelClaim`` snapshots.  The
assignment service runs it twice: once to preview, once under row locks to
commit.

The desired sets passed in are the farmer's complete final state, not a
delta: a parcel the farmer currently holds that is absent from a desired set
loses that role.
"""

from __future__ import annotations

import uuid
from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field
from enum import StrEnum


class AssignmentRole(StrEnum):
	owner = "owner"
	cultivator = "cultivator"


class Resolution(StrEnum):
	"""Caller decision for one conflict: overwrite the other claim, or keep it."""

	force = "force"
	keep = "keep"


@dataclass(slots=True, frozen=True)
class ParcelClaim:
	parcel_id: str
	owner_id: uuid.UUID | None = None
	cultivator_id: uuid.UUID | None = None
	owner_name: str | None = None
	cultivator_name: str | None = None


@dataclass(slots=True, frozen=True)
class Conflict:
	parcel_id: str
	role: AssignmentRole
	current_farmer_id: uuid.UUID
	current_farmer_name: str | None


@dataclass(slots=True)
class AssignmentPlan:
	owner_removals: list[str] = field(default_factory=list)
	cultivator_removals: list[str] = field(default_factory=list)
	owner_grants: list[str] = field(default_factory=list)
	cultivator_grants: list[str] = field(default_factory=list)

	@property
	def is_empty(self) -> bool:
		return not (
			self.owner_removals
			or self.cultivator_removals
			or self.owner_grants
			or self.cultivator_grants
		)

	@property
	def touched_ids(self) -> list[str]:
		return sorted(
			set(self.owner_removals)
			| set(self.cultivator_removals)
			| set(self.owner_grants)
			| set(self.cultivator_grants)
		)


def held_by(farmer_id: uuid.UUID, claims: Mapping[str, ParcelClaim]) -> tuple[set[str], set[str]]:
	"""Return the (owned, cultivated) ids the farmer currently holds among ``claims``."""
	owned = {pid for pid, claim in claims.items() if claim.owner_id == farmer_id}
	cultivated = {pid for pid, claim in claims.items() if claim.cultivator_id == farmer_id}
	return owned, cultivated


def find_invalid_ids(
	desired_owned: Iterable[str],
	desired_cultivated: Iterable[str],
	claims: Mapping[str, ParcelClaim],
) -> list[str]:
	requested = set(desired_owned) | set(desired_cultivated)
	return sorted(pid for pid in requested if pid not in claims)


def find_conflicts(
	farmer_id: uuid.UUID,
	desired_owned: Iterable[str],
	desired_cultivated: Iterable[str],
	claims: Mapping[str, ParcelClaim],
) -> list[Conflict]:
	"""Detect desired assignments that would overwrite another farmer's claim.

	A cultivator claim equal to the current owner is treated as defaulted to
	the owner; when the same request also takes ownership of that parcel the
	cultivator moves with it and no conflict is reported.
	"""
	owned = set(desired_owned)
	conflicts: list[Conflict] = []

	for pid in sorted(owned):
		claim = claims[pid]
		if claim.owner_id is not None and claim.owner_id != farmer_id:
			conflicts.append(
				Conflict(
					parcel_id=pid,
					role=AssignmentRole.owner,
					current_farmer_id=claim.owner_id,
					current_farmer_name=claim.owner_name,
				)
			)

	for pid in sorted(set(desired_cultivated)):
		claim = claims[pid]
		if claim.cultivator_id is None or claim.cultivator_id == farmer_id:
			continue
		implicit_transfer = pid in owned and claim.cultivator_id == claim.owner_id
		if implicit_transfer:
			continue
		conflicts.append(
			Conflict(
				parcel_id=pid,
				role=AssignmentRole.cultivator,
				current_farmer_id=claim.cultivator_id,
				current_farmer_name=claim.cultivator_name,
			)
		)

	return conflicts


def build_plan(
	farmer_id: uuid.UUID,
	desired_owned: Iterable[str],
	desired_cultivated: Iterable[str],
	claims: Mapping[str, ParcelClaim],
) -> AssignmentPlan:
	owned = set(desired_owned)
	cultivated = set(desired_cultivated)
	current_owned, current_cultivated = held_by(farmer_id, claims)

	return AssignmentPlan(
		owner_removals=sorted(current_owned - owned),
		cultivator_removals=sorted(current_cultivated - cultivated),
		owner_grants=sorted(pid for pid in owned if claims[pid].owner_id != farmer_id),
		cultivator_grants=sorted(pid for pid in cultivated if claims[pid].cultivator_id != farmer_id),
	)


def apply_resolutions(
	farmer_id: uuid.UUID,
	desired_owned: Iterable[str],
	desired_cultivated: Iterable[str],
	claims: Mapping[str, ParcelClaim],
	resolutions: Mapping[tuple[str, AssignmentRole], Resolution],
) -> tuple[set[str], set[str]]:
	"""Fold per-conflict decisions into the desired sets.

	``keep`` drops the id from the matching desired set.  Keeping another
	farmer's ownership also drops a cultivator request that only passed
	conflict detection as an implicit transfer with that ownership.
	Conflicts without a decision are forced.
	"""
	owned = set(desired_owned)
	cultivated = set(desired_cultivated)

	for (pid, role), decision in resolutions.items():
		if decision != Resolution.keep:
			continue
		if role == AssignmentRole.owner:
			owned.discard(pid)
			claim = claims.get(pid)
			if (
				claim is not None
				and claim.cultivator_id is not None
				and claim.cultivator_id != farmer_id
				and claim.cultivator_id == claim.owner_id
			):
				cultivated.discard(pid)
		else:
			cultivated.discard(pid)

	return owned, cultivated
