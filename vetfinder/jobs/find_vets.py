"""CLI job to search nearby vets and optionally save one to a user's list."""

import argparse
import dataclasses
import json
import logging
import math
from typing import List, Optional

from vetfinder.core.config import get_settings
from vetfinder.core.coordinator import PresentationCoordinator
from vetfinder.core.errors import ConfigError, ValidationError
from vetfinder.core.geo import Bounds, Coordinate
from vetfinder.models import Identity

logger = logging.getLogger(__name__)


def _parse_bounds(raw: str) -> Bounds:
    try:
        nelat, nelng, swlat, swlng = (float(part) for part in raw.split(","))
    except ValueError as exc:
        raise argparse.ArgumentTypeError("bounds must be 'nelat,nelng,swlat,swlng'") from exc
    return Bounds(north_east=Coordinate(nelat, nelng), south_west=Coordinate(swlat, swlng))


def run_find_vets_job(
    *,
    location: Optional[str],
    bounds: Optional[Bounds],
    radius_m: Optional[int] = None,
    service: Optional[str],
    save_vet_id: Optional[str],
    user_id: Optional[str],
) -> dict:
    settings = get_settings()
    if not settings.google_api_key:
        raise ConfigError("GOOGLE_MAPS_API_KEY is required")
    if not location and bounds is None:
        raise ValidationError("Either a location or bounds must be given")
    if radius_m is not None:
        if not math.isfinite(radius_m) or radius_m <= 0:
            raise ValidationError("radius must be a positive number")
        settings = dataclasses.replace(settings, search_radius_m=radius_m)

    identity = Identity(uid=user_id) if user_id else None
    coordinator = PresentationCoordinator(settings=settings, identity=identity)
    try:
        if bounds is not None:
            future = coordinator.on_map_idle(bounds)
        else:
            logger.info("Searching vets near %s", location)
            future = coordinator.search(location)
        if future is not None:
            future.result()
        coordinator.set_service_filter(service or "")

        if save_vet_id:
            coordinator.select(save_vet_id)
            if coordinator.selected is None:
                raise ValidationError(f"{save_vet_id} is not among the results")
            coordinator.save(save_vet_id)

        model = coordinator.render_model()
    finally:
        coordinator.close()

    logger.info("Completed search: state=%s vets=%d", model.state, len(model.vets))
    return model.to_dict()


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Find veterinary clinics near a location")
    target = parser.add_mutually_exclusive_group(required=True)
    target.add_argument("--location", dest="location", help="Address, city or zip code")
    target.add_argument(
        "--bounds",
        dest="bounds",
        type=_parse_bounds,
        help="Map viewport as 'nelat,nelng,swlat,swlng'",
    )
    parser.add_argument("--radius", dest="radius_m", type=int, help="Search radius in meters for --location")
    parser.add_argument("--service", dest="service", help="Only show clinics offering this service")
    parser.add_argument("--save", dest="save_vet_id", help="Place id of a result to add to the user's list")
    parser.add_argument("--user", dest="user_id", help="User id owning the saved list")
    return parser


def main(argv: Optional[List[str]] = None) -> None:
    logging.basicConfig(level=logging.INFO, format="%(asctime)s %(levelname)s %(name)s - %(message)s")
    parser = build_parser()
    args = parser.parse_args(argv)
    if args.save_vet_id and not args.user_id:
        parser.error("--save requires --user")

    try:
        result = run_find_vets_job(
            location=args.location,
            bounds=args.bounds,
            radius_m=args.radius_m,
            service=args.service,
            save_vet_id=args.save_vet_id,
            user_id=args.user_id,
        )
    except ConfigError as exc:
        logger.error("Configuration error: %s", exc)
        raise SystemExit(2) from exc
    except ValidationError as exc:
        logger.error("Invalid request: %s", exc)
        raise SystemExit(2) from exc

    print(json.dumps(result, indent=2))


if __name__ == "__main__":
    main()
