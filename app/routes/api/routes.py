from app import cache, db
from app.models import Pilot
from app.routes.api import bp
from app.utils.cache_utils import get_cache_stats
from app.utils.responses import success_response
from app.utils.timezone_utils import get_utc_time, isoformat


@cache.memoize(timeout=3600)  # Cache for 1 hour
def active_pilots():
    return [pilot.to_dict() for pilot in Pilot.get_all_active()]


@bp.route("/pilots")
def pilots():
    """Get every active pilot"""
    return success_response(active_pilots())


@bp.route("/health")
def health():
    """Health check endpoint for load balancers and containers"""
    db.session.execute(db.text("SELECT 1"))
    return success_response(
        {
            "status": "healthy",
            "timestamp": isoformat(get_utc_time()),
            "cache": get_cache_stats(),
        }
    )
