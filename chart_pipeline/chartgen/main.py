"""
FastAPI entrypoint: thin routes in front of the dispatcher.

- POST /api/generate        JSON {prompt, config, dynamicData?, mode?}
- POST /api/generate/form   form fields prompt, config (JSON), dynamicData (JSON)
- POST /api/upload          multipart CSV/Excel file -> DynamicData JSON

Routes only parse bodies, load the system prompt template and map pipeline
errors to status codes; all validation happens in the dispatcher. Malformed
bodies are input errors too and get the same {"error": ...} 400 response.
"""

import json
import logging
import uuid
from typing import Any, Dict, Optional

from dotenv import load_dotenv

# Load environment variables from .env file
load_dotenv()

from fastapi import FastAPI, File, Form, Request, UploadFile
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from .datasets import dynamic_data_from_dataframe, read_table
from .dispatcher import ChartDispatcher
from .errors import ChartGenerationError, UpstreamError
from .prompting import load_prompt_template
from .schemas import FileUpload, GenerateRequest, SuggestionsResponse, validate
from .settings import Settings

settings = Settings.from_env()

logging.basicConfig(
    level=settings.log_level,
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)
logger = logging.getLogger(__name__)

app = FastAPI(title="Chart Pipeline")
dispatcher = ChartDispatcher()


def _error(message: str, status_code: int, **extra: Any) -> JSONResponse:
    return JSONResponse({"error": message, **extra}, status_code=status_code)


def _failure(e: Exception, **extra: Any) -> JSONResponse:
    """Map a pipeline exception to a JSON error with a user-safe message."""
    if isinstance(e, UpstreamError):
        logger.error(f"Upstream failure (status={e.status_code}): {e.body[:1000]}")
    if isinstance(e, ChartGenerationError):
        return _error(e.message, e.http_status, **extra)
    logger.exception("Unexpected error during chart generation")
    return _error("An unexpected error occurred.", 500, **extra)


@app.exception_handler(RequestValidationError)
async def request_validation_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    """Malformed request bodies -> 400 with the usual {"error": ...} body."""
    messages = []
    for err in exc.errors():
        loc = ".".join(str(part) for part in err.get("loc", ()) if part != "body")
        messages.append(f"{loc}: {err.get('msg')}" if loc else str(err.get("msg")))
    logger.info(f"Rejected malformed request to {request.url.path}: {messages}")
    extra = {"success": False} if request.url.path == "/api/generate/form" else {}
    return _error(f"Invalid request: {'; '.join(messages)}", 400, **extra)


def _chart_payload(chart) -> Dict[str, Any]:
    return chart.with_id(uuid.uuid4().hex).model_dump(by_alias=True, mode="json", exclude_none=True)


def _system_prompt() -> Optional[str]:
    try:
        return load_prompt_template(settings.system_prompt_path)
    except OSError as e:
        logger.error(f"System prompt template not readable at {settings.system_prompt_path}: {e}")
        return None


@app.post("/api/generate")
async def generate_endpoint(body: GenerateRequest):
    config = body.config or settings.default_provider_config()
    if config is None:
        return _error("Missing provider config", 400)

    template = _system_prompt()
    if template is None:
        return _error("System prompt template is not available", 500)

    if body.mode == "suggestions":
        suggestions = await dispatcher.generate_suggestions(config, template, body.dynamic_data)
        return SuggestionsResponse(suggestions=suggestions)

    if not body.prompt:
        return _error("Missing prompt", 400)

    try:
        chart = await dispatcher.generate_chart(body.prompt, config, template, body.dynamic_data)
    except Exception as e:
        return _failure(e)
    return _chart_payload(chart)


@app.post("/api/generate/form")
async def generate_form_endpoint(
    prompt: Optional[str] = Form(None),
    config: Optional[str] = Form(None),
    dynamic_data: Optional[str] = Form(None, alias="dynamicData"),
):
    if not prompt or not config:
        return _error("Missing required data", 400, success=False)

    try:
        config_obj = json.loads(config)
        data_obj = json.loads(dynamic_data) if dynamic_data else None
    except json.JSONDecodeError as e:
        return _error(f"config and dynamicData must be valid JSON: {e}", 400, success=False)

    template = _system_prompt()
    if template is None:
        return _error("System prompt template is not available", 500, success=False)

    try:
        chart = await dispatcher.generate_chart(prompt, config_obj, template, data_obj)
    except Exception as e:
        return _failure(e, success=False)
    return {"success": True, "chart": _chart_payload(chart)}


@app.post("/api/upload")
async def upload_endpoint(file: UploadFile = File(...)):
    content = await file.read()
    file_name = file.filename or ""

    checked = validate(FileUpload, {"file_name": file_name, "size_bytes": len(content)})
    if not checked.success:
        return _error(checked.error, 400)

    try:
        df = read_table(content, file_name)
    except Exception as e:
        logger.warning(f"Could not parse upload {file_name!r}: {type(e).__name__}: {e}")
        return _error(f"Error reading uploaded file: {e}", 400)

    if df.empty:
        return _error("No data rows found in file", 400)

    data = dynamic_data_from_dataframe(df, file_name)
    return data.model_dump(by_alias=True, mode="json")


@app.get("/")
async def root():
    return {
        "message": "Chart Pipeline API",
        "usage": "POST /api/upload with a CSV/Excel file, then POST /api/generate with JSON {prompt, config, dynamicData?, mode?}",
    }


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(app, host="0.0.0.0", port=8000)
