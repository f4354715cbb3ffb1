"""
Spanstack Demo - Traced support chat pipeline
Runs a simulated chat request (history load, knowledge-base lookup, AI call
with a failing first provider), then prints the stored trace as a tree.

Usage:
    python examples/demo_pipeline.py --mode flow
    python examples/demo_pipeline.py --mode prefix --export
"""
import argparse
import time

from spanstack import TraceExporter, build_tree, get_manager, init, observe, run_with_span
from spanstack.config import get_settings


@observe(name="cache.history_load")
def load_history(session_id):
    time.sleep(0.01)
    return [{"role": "user", "content": "Hi"}]


@observe(name="kb.match", capture_args=True)
def find_matches(query):
    time.sleep(0.02)
    return ["faq-refunds"] if "refund" in query else []


@observe(name="adapter.gemini.handleRequest", meta={"provider": "gemini"})
def call_gemini(prompt):
    raise TimeoutError("gemini did not answer in time")


@observe(name="adapter.openai.handleRequest", meta={"provider": "openai"})
def call_openai(prompt):
    time.sleep(0.05)
    return f"Answer to: {prompt}"


def ask(session_id, message):
    history = load_history(session_id)
    matches = find_matches(message)

    def call_ai():
        try:
            return call_gemini(message)
        except TimeoutError:
            return call_openai(message)

    return run_with_span("ai.call", call_ai, {"history": len(history), "matches": len(matches)})


def print_tree(nodes, indent=0):
    for node in nodes:
        duration = "" if node.duration_ms is None else f" ({node.duration_ms} ms)"
        print(f"{'  ' * indent}- {node.label}{duration}")
        print_tree(node.children, indent + 1)


def main():
    parser = argparse.ArgumentParser(description="Trace a simulated chat request")
    parser.add_argument("--mode", choices=["flow", "prefix", "debug"], default="flow")
    parser.add_argument("--export", action="store_true", help="Also write a JSON export")
    args = parser.parse_args()

    init(db_path=".spanstack-demo.db")
    manager = get_manager()

    with manager.trace("demo.chat") as recorder:
        answer = run_with_span("support_chat.ask", lambda: ask("s-1", "How do I get a refund?"))

    print(answer)
    print(f"trace {recorder.trace_id}")
    print_tree(build_tree(manager.repository.fetch(recorder.trace_id), mode=args.mode))

    if args.export:
        result = TraceExporter(manager.repository, get_settings().export_dir).export_to_json_file(
            recorder.trace_id, "demo.chat"
        )
        print(result.path if result.ok else result.error)


if __name__ == "__main__":
    main()
