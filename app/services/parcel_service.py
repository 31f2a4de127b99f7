"""Parcel reads and village map rendering."""

from __future__ import annotations

import uuid

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.config import get_settings
from app.errors import NotFoundError
from app.models.cadastre import Farmer, Parcel
from app.schemas.parcel import (
	MapRender,
	ParcelStyleRead,
	RenderedParcelRead,
	SegmentDimensionRead,
)
from app.services.map_render import (
	ColorPolicy,
	LodThresholds,
	RenderOptions,
	fit_bounds,
	render_parcels,
	segment_lengths,
)


class ParcelService:
	def __init__(self, db: AsyncSession):
		self.db = db

	async def list_parcels(
		self,
		village: str | None = None,
		owner_id: uuid.UUID | None = None,
		cultivator_id: uuid.UUID | None = None,
	) -> list[Parcel]:
		stmt = select(Parcel).order_by(Parcel.id)
		if village is not None:
			stmt = stmt.where(Parcel.village == village)
		if owner_id is not None:
			stmt = stmt.where(Parcel.owner_id == owner_id)
		if cultivator_id is not None:
			stmt = stmt.where(Parcel.cultivator_id == cultivator_id)
		rows = await self.db.execute(stmt)
		return list(rows.scalars().all())

	async def get_parcel(self, parcel_id: str) -> Parcel:
		parcel = await self.db.get(Parcel, parcel_id)
		if parcel is None:
			raise NotFoundError(f"parcel {parcel_id} not found")
		return parcel

	async def render_village_map(self, village: str, options: RenderOptions) -> MapRender:
		"""Render set for one viewport of a village map, plus initial bounds and selected-parcel dimensions."""
		settings = get_settings()
		thresholds = LodThresholds.from_settings(settings)
		parcels = await self.list_parcels(village=village)

		farmer_rows = await self.db.execute(select(Farmer.id, Farmer.color).where(Farmer.village == village))
		farmer_colors = {row.id: row.color for row in farmer_rows.all()}

		rendered = render_parcels(
			parcels,
			farmer_colors,
			options,
			thresholds=thresholds,
			policy=ColorPolicy.from_settings(settings),
		)
		bounds = fit_bounds(
			parcels,
			highlight_farmer_id=options.highlight_farmer_id,
			show_all_colors=options.show_all_colors,
			limit=settings.map_fit_max_parcels,
		)

		dimensions: list[SegmentDimensionRead] = []
		if options.selected_parcel_id is not None:
			selected = next((p for p in parcels if p.id == options.selected_parcel_id), None)
			if selected is not None:
				dimensions = [
					SegmentDimensionRead(
						segment_index=dim.segment_index,
						length_m=dim.length_m,
						mid_lon=dim.mid_lon,
						mid_lat=dim.mid_lat,
					)
					for dim in segment_lengths(selected.coordinates)
				]

		return MapRender(
			village=village,
			zoom=options.zoom,
			lod=thresholds.level_for(options.zoom).value,
			tolerance=thresholds.tolerance_for(options.zoom),
			parcels=[
				RenderedParcelRead(
					parcel_id=item.parcel_id,
					owner_id=item.owner_id,
					ring=[list(pt) for pt in item.ring],
					simplified=item.simplified,
					style=ParcelStyleRead(
						color=item.style.color,
						fill_color=item.style.fill_color,
						fill_opacity=item.style.fill_opacity,
						weight=item.style.weight,
					),
				)
				for item in rendered
			],
			fit_bounds=list(bounds) if bounds is not None else None,
			selected_dimensions=dimensions,
		)
