"""
Scripted stdio MCP worker for tests.

Usage: python fake_worker.py <mode>

Modes:
    normal     well-behaved server
    silent     reads requests, never answers
    crash      exits with code 3 before reading anything
    garbage    writes undecodable lines around every reply
    split      writes every reply in small flushed pieces
    reverse    holds tools/call requests until three arrived, answers in reverse
    error      answers tools/* with JSON-RPC errors
    slow-init  delays the initialize reply by one second
    init-error answers initialize with an error

Tools (normal, garbage, split, reverse):
    echo        returns its arguments
    sleep       answers after ``seconds`` on a background thread
    crash       exits with code 5 without answering
    big         returns a ``size`` character string
    poison      writes an undecodable line (``kind``: nested or bigint) before replying
    ask_client  sends a request to the client and returns the client's reply
"""

import json
import sys
import threading
import time

MODE = sys.argv[1] if len(sys.argv) > 1 else "normal"

_lock = threading.Lock()
_held = []
_asked = {}


def write(message):
    data = json.dumps(message) + "\n"
    with _lock:
        if MODE == "garbage":
            sys.stdout.write("this is not json\n{\"broken\": \n")
        if MODE == "split":
            for i in range(0, len(data), 7):
                sys.stdout.write(data[i:i + 7])
                sys.stdout.flush()
                time.sleep(0.001)
        else:
            sys.stdout.write(data)
        if MODE == "garbage":
            sys.stdout.write("\n[1, 2, 3]\n")
        sys.stdout.flush()


def write_raw(line):
    with _lock:
        sys.stdout.write(line + "\n")
        sys.stdout.flush()


def result(request_id, value):
    write({"jsonrpc": "2.0", "id": request_id, "result": value})


def error(request_id, code, message=None):
    err = {"code": code}
    if message is not None:
        err["message"] = message
    write({"jsonrpc": "2.0", "id": request_id, "error": err})


def text(value):
    return {"content": [{"type": "text", "text": value}]}


def handle_initialize(request_id):
    if MODE == "slow-init":
        time.sleep(1.0)
    if MODE == "init-error":
        error(request_id, -32603, "initialization refused")
        return
    result(request_id, {
        "protocolVersion": "2024-11-05",
        "capabilities": {"tools": {}},
        "serverInfo": {"name": "fake-worker", "version": "0.1.0"},
    })


def handle_call(request_id, params):
    name = params.get("name")
    arguments = params.get("arguments") or {}

    if MODE == "error":
        error(request_id, -32000, "tool exploded")
        return

    if MODE == "reverse":
        _held.append((request_id, arguments))
        if len(_held) == 3:
            for held_id, held_args in reversed(_held):
                result(held_id, {"echo": held_args})
            del _held[:]
        return

    if name == "echo":
        result(request_id, {"echo": arguments})
    elif name == "sleep":
        def later():
            time.sleep(float(arguments.get("seconds", 0.1)))
            result(request_id, {"slept": arguments.get("seconds")})
        threading.Thread(target=later, daemon=True).start()
    elif name == "crash":
        sys.stdout.flush()
        sys.exit(5)
    elif name == "big":
        result(request_id, text("x" * int(arguments.get("size", 1024))))
    elif name == "poison":
        # An undecodable line ahead of the real reply
        if arguments.get("kind") == "bigint":
            write_raw("{\"x\": " + "1" * 5000 + "}")
        else:
            write_raw("[" * 200000)
        result(request_id, {"survived": arguments.get("kind")})
    elif name == "ask_client":
        _asked["srv-1"] = request_id
        write({"jsonrpc": "2.0", "id": "srv-1", "method": "sampling/createMessage", "params": {}})
    else:
        error(request_id, -32602, "Unknown tool: %s" % name)


def main():
    if MODE == "crash":
        sys.stderr.write("fake worker crashing\n")
        sys.stderr.flush()
        sys.exit(3)

    for line in sys.stdin:
        line = line.strip()
        if not line:
            continue
        message = json.loads(line)

        if "method" not in message:
            # Reply to a request we sent to the client
            pending = _asked.pop(message.get("id"), None)
            if pending is not None:
                result(pending, {"client_reply": message})
            continue

        if "id" not in message:
            continue

        request_id = message["id"]
        method = message["method"]
        params = message.get("params") or {}

        if MODE == "silent":
            continue

        if method == "initialize":
            handle_initialize(request_id)
        elif method == "tools/list":
            if MODE == "error":
                error(request_id, -32001)
                continue
            write({"jsonrpc": "2.0", "method": "notifications/message", "params": {"level": "info"}})
            result(request_id, {"tools": [
                {"name": "echo", "description": "Echo arguments", "inputSchema": {"type": "object"}},
                {"name": "sleep", "description": "Sleep then answer", "inputSchema": {"type": "object"}},
            ]})
        elif method == "tools/call":
            handle_call(request_id, params)
        else:
            error(request_id, -32601, "Method not found: %s" % method)


if __name__ == "__main__":
    main()
