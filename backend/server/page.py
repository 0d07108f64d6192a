"""
Control page rendering.

Server-rendered HTML: one numbered button per catalog entry (grid of
CATALOG_GRID_COLUMNS per row) plus an always-enabled Interrupt button.
The inline script only mirrors server state; every rule lives server-side.
"""

from __future__ import annotations

from html import escape

from catalog.messages import MessageCatalog
from spec import CATALOG_GRID_COLUMNS

_PAGE = """<!doctype html>
<html lang="en">
<head>
<meta charset="utf-8">
<title>{title}</title>
<style>
  body {{ background: #18181b; color: #fafafa; font-family: sans-serif; margin: 0; }}
  header {{ padding: 24px; font-size: 20px; font-weight: 600; text-align: center; }}
  main {{ display: flex; flex-direction: column; align-items: center; gap: 16px; }}
  #status {{ color: #a1a1aa; font-size: 14px; }}
  #error {{ color: #f87171; font-size: 14px; min-height: 1em; }}
  #stream {{ color: #71717a; font-size: 12px; min-height: 1em; }}
  .grid {{ display: grid; grid-template-columns: repeat({columns}, 1fr); gap: 8px;
           width: 100%; max-width: 600px; }}
  button {{ background: #3f3f46; color: #fff; border: 0; border-radius: 8px;
            padding: 8px 16px; font-size: 16px; cursor: pointer; }}
  button:hover:enabled {{ background: #52525b; }}
  button:disabled {{ opacity: 0.4; cursor: default; }}
</style>
</head>
<body>
<header>{title}</header>
<main>
  <div id="status">Connecting…</div>
  <div id="stream"></div>
  <button id="retry" type="button" hidden>Retry connection</button>
  <button id="interrupt" type="button">Interrupt</button>
  <div>Select a message to send to the avatar:</div>
  <div class="grid">
{buttons}
  </div>
  <div id="error"></div>
</main>
<script>
(function () {{
  const proto = location.protocol === "https:" ? "wss" : "ws";
  const ws = new WebSocket(proto + "://" + location.host + "/ws");
  const status = document.getElementById("status");
  const stream = document.getElementById("stream");
  const retry = document.getElementById("retry");
  const error = document.getElementById("error");
  const buttons = Array.from(document.querySelectorAll("button[data-index]"));

  function setInput(enabled) {{ buttons.forEach(b => b.disabled = !enabled); }}
  function send(msg) {{ if (ws.readyState === WebSocket.OPEN) ws.send(JSON.stringify(msg)); }}

  buttons.forEach(b => b.addEventListener("click", () => {{
    error.textContent = "";
    send({{type: "SELECT", index: Number(b.dataset.index)}});
  }}));
  document.getElementById("interrupt").addEventListener("click", () => send({{type: "INTERRUPT"}}));
  retry.addEventListener("click", () => {{
    error.textContent = "";
    retry.hidden = true;
    send({{type: "CONNECT"}});
  }});

  ws.onmessage = (ev) => {{
    const msg = JSON.parse(ev.data);
    if (msg.type === "SESSION_INIT" || msg.type === "STATE") {{
      status.textContent = msg.state;
      setInput(msg.input_enabled);
    }} else if (msg.type === "STREAM_READY") {{
      stream.textContent = "Stream " + msg.remote_session_id + (msg.url ? " @ " + msg.url : "");
    }} else if (msg.type === "ERROR") {{
      error.textContent = msg.error_type + ": " + msg.message;
      if (msg.op === "connect" && msg.recoverable) retry.hidden = false;
    }} else if (msg.type === "INPUT_DISABLED") {{
      error.textContent = "Avatar is not ready yet.";
    }}
  }};
  ws.onclose = () => {{ status.textContent = "CLOSED"; stream.textContent = ""; setInput(false); }};
}})();
</script>
</body>
</html>
"""


def render_control_page(catalog: MessageCatalog, *, title: str) -> str:
    """Render the operator page; catalog buttons start disabled."""
    buttons = "\n".join(
        f'    <button type="button" data-index="{entry.index}" '
        f'title="{escape(entry.text)}" disabled>{entry.label}</button>'
        for entry in catalog.entries
    )
    return _PAGE.format(
        title=escape(title),
        columns=CATALOG_GRID_COLUMNS,
        buttons=buttons,
    )
