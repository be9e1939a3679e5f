"""Minimal interactive chat loop (reads SESSION_TOKEN from env / .env)."""

from chatgpt_client import ChatGPTAPI
from chatgpt_client.api.service import run_turn


def _print_delta(state: dict):
    def on_partial(text: str) -> None:
        # 每帧都是当前全文，只打印新增部分
        print(text[len(state["shown"]):], end="", flush=True)
        state["shown"] = text
    return on_partial


if __name__ == "__main__":
    with ChatGPTAPI() as api:
        while True:
            try:
                question = input("\nYou: ").strip()
            except EOFError:
                break
            if not question:
                continue
            if question == "/reset":
                api.reset_conversation()
                continue
            state = {"shown": ""}
            print("ChatGPT: ", end="")
            outcome = run_turn(api.conversation, question, _print_delta(state))
            if not outcome.ok:
                print(f"\n[{outcome.status}] {outcome.error}")
