from fastapi import APIRouter, HTTPException, Request

from controllers.wall_controller import get_client_config, get_stats

router = APIRouter()


@router.get("/config.json")
async def client_config_route(request: Request):
	"""Return the websocket URL and poll interval for the browser client."""
	try:
		return await get_client_config(request)
	except HTTPException:
		raise
	except Exception as exc:
		raise HTTPException(status_code=500, detail=str(exc))


@router.get("/stats")
async def stats_route(request: Request):
	"""Return live viewer and relay counters."""
	try:
		return await get_stats(request)
	except HTTPException:
		raise
	except Exception as exc:
		raise HTTPException(status_code=500, detail=str(exc))
