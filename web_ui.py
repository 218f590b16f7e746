"""
Gradio Web UI for meeting protocol generation.

Generates the DOCX protocol of a meeting either from the meetings backend
(by meeting id) or from an exported protocol data JSON file.

Usage:
    python web_ui.py

Then open http://localhost:7860 in your browser.

Features:
- Fetch by meeting id (MEETING_API_BASE_URL / MEETING_API_TOKEN)
- Offline generation from an uploaded snapshot JSON
- Optional building address override for the protocol title
- Clear error messages for incomplete snapshots and fetch failures
"""

import json
import tempfile
from pathlib import Path
from typing import Optional

import gradio as gr

from config import get_config
from logging_config import get_logger, setup_logging
from meeting_api import MeetingApiClient
from protocol_errors import ProtocolError
from protocol_generator import generate_protocol
from protocol_types import ProtocolData

logger = get_logger(__name__)

# Snapshots larger than this are certainly not protocol data
MAX_SNAPSHOT_SIZE = 20 * 1024 * 1024  # 20MB
ALLOWED_EXTENSIONS = {'.json'}


def validate_snapshot_file(file_path: str) -> tuple[bool, str]:
    """
    Validate an uploaded snapshot file.

    Args:
        file_path: Path to the uploaded file

    Returns:
        Tuple of (is_valid, error_message)
    """
    path = Path(file_path)
    if not path.is_file():
        return False, "File not found"

    if path.suffix.lower() not in ALLOWED_EXTENSIONS:
        return False, f"Invalid file type: {path.suffix}. Allowed: {', '.join(ALLOWED_EXTENSIONS)}"

    size = path.stat().st_size
    if size > MAX_SNAPSHOT_SIZE:
        return False, f"File too large: {size // (1024*1024)}MB (max {MAX_SNAPSHOT_SIZE // (1024*1024)}MB)"

    return True, ""


def load_snapshot(
    meeting_id: Optional[str],
    snapshot_file: Optional[str],
    building_address: Optional[str] = None,
    client: Optional[MeetingApiClient] = None,
) -> ProtocolData:
    """
    Load protocol data from an uploaded file, or from the backend by meeting id.

    An uploaded file takes precedence over the meeting id.

    Raises:
        ValueError: Neither input given, or the uploaded file is unusable
        ProtocolError: Fetch failed or the snapshot is invalid
    """
    address = (building_address or "").strip() or None

    if snapshot_file:
        ok, error = validate_snapshot_file(snapshot_file)
        if not ok:
            raise ValueError(error)
        try:
            body = json.loads(Path(snapshot_file).read_text(encoding="utf-8"))
        except json.JSONDecodeError as e:
            raise ValueError(f"Snapshot is not valid JSON: {e}") from e
        if isinstance(body, dict) and "meeting" not in body and isinstance(body.get("data"), dict):
            body = body["data"]
        if not isinstance(body, dict):
            raise ValueError("Snapshot must be a JSON object")
        return ProtocolData.from_dict(body, building_address=address)

    meeting_id = (meeting_id or "").strip()
    if not meeting_id:
        raise ValueError("Enter a meeting id or upload a snapshot JSON file")

    client = client or MeetingApiClient()
    return client.fetch_protocol_data(meeting_id, building_address=address)


def generate_from_inputs(
    meeting_id: Optional[str],
    snapshot_file: Optional[str],
    building_address: Optional[str] = None,
    client: Optional[MeetingApiClient] = None,
    output_dir: Optional[str] = None,
) -> tuple[Optional[str], str]:
    """
    Generate the protocol and write it for download.

    Returns:
        Tuple of (path to the .docx or None, status message)
    """
    try:
        data = load_snapshot(meeting_id, snapshot_file, building_address, client=client)
        package = generate_protocol(data)
    except ValueError as e:
        return None, f"Error: {e}"
    except ProtocolError as e:
        logger.error(f"Protocol generation failed: {e}")
        hint = " (temporary, try again)" if e.recoverable else ""
        return None, f"Error{hint}: {e.message}"

    out_dir = Path(output_dir or tempfile.mkdtemp(prefix="protocol_"))
    out_dir.mkdir(parents=True, exist_ok=True)
    out_path = out_dir / package.file_name
    out_path.write_bytes(package.content)

    meeting = data.meeting
    status = (
        f"Protocol {meeting.number} generated: {len(data.agenda_items)} agenda items, "
        f"{len(data.unique_voters())} participants, {len(package) // 1024} KB"
    )
    logger.info(status)
    return str(out_path), status


def clear_inputs():
    """Reset all inputs and outputs."""
    return "", None, "", None, ""


def build_demo() -> gr.Blocks:
    """Build the Gradio interface."""
    with gr.Blocks(title="Meeting Protocol Generator") as demo:
        gr.Markdown("# Протокол общего собрания собственников")
        gr.Markdown("""
Generate the meeting protocol (.docx) with per-voter signature QR codes.

- **Meeting id**: fetch the finished meeting from the backend
- **Snapshot JSON**: generate offline from exported protocol data (takes precedence)
""")

        with gr.Row():
            meeting_id_input = gr.Textbox(label="Meeting id / ID собрания", placeholder="e.g. 42")
            address_input = gr.Textbox(label="Building address / Адрес дома (optional)")

        with gr.Row():
            snapshot_input = gr.File(
                label="Snapshot JSON / Данные протокола",
                file_types=[".json"],
                type="filepath",
            )

        with gr.Row():
            generate_btn = gr.Button("Generate / Сформировать", variant="primary", size="lg")
            clear_btn = gr.Button("Clear / Очистить", variant="secondary", size="lg")

        with gr.Row():
            status_output = gr.Textbox(label="Status / Статус", lines=2)

        with gr.Row():
            docx_output = gr.File(label="Protocol / Протокол (.docx)")

        generate_btn.click(
            fn=lambda meeting_id, snapshot, address: generate_from_inputs(meeting_id, snapshot, address),
            inputs=[meeting_id_input, snapshot_input, address_input],
            outputs=[docx_output, status_output]
        )

        clear_btn.click(
            fn=clear_inputs,
            inputs=[],
            outputs=[meeting_id_input, snapshot_input, address_input, docx_output, status_output]
        )

    return demo


def main():
    cfg = get_config()
    setup_logging(cfg)

    for issue in cfg.validate():
        logger.warning(f"Config: {issue}")

    # Default to localhost for security. Set WEB_UI_HOST=0.0.0.0 to allow external access.
    if cfg.web_ui_host == "0.0.0.0":
        logger.warning("Web UI binding to all network interfaces. This may expose the application.")
        logger.warning("Set WEB_UI_HOST=127.0.0.1 for local-only access.")

    logger.info(f"Starting web UI on http://{cfg.web_ui_host}:{cfg.web_ui_port}")
    build_demo().launch(server_name=cfg.web_ui_host, server_port=cfg.web_ui_port)


if __name__ == "__main__":
    main()
