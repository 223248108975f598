#!/usr/bin/env python
"""Run the Mistral Chat node from the command line.

Usage:
    python -m scripts.run_chat --prompt "Write a haiku about rivers" --model mistral-small-latest

The API key is read from the MISTRAL_API_KEY environment variable. Streamed
text is printed as it arrives.
"""

import argparse
import asyncio
import json
import sys

from mistral_chat.exceptions import MistralNodeError
from mistral_chat.host import DataValue, LocalProcessContext, Outputs
from mistral_chat.llm.request import MistralChatNodeData
from mistral_chat.logging_config import get_logger, setup_logging
from mistral_chat.node import MistralChatNode
from mistral_chat.pricing.models import DEFAULT_MODEL, Currency

logger = get_logger(__name__)


async def run_chat(
    prompt: str,
    model: str,
    system_prompt: str | None,
    stream: bool,
    currency: Currency,
) -> Outputs:
    """Run one chat completion and print it.

    Args:
        prompt: User prompt.
        model: Model id.
        system_prompt: Optional system prompt.
        stream: Stream the response.
        currency: Currency for the cost estimate.

    Returns:
        The node outputs.
    """
    setup_logging(level="WARNING")

    printed = 0

    def print_partial(outputs: Outputs) -> None:
        nonlocal printed
        text = outputs["response"].value
        print(text[printed:], end="", flush=True)
        printed = len(text)

    data = MistralChatNodeData(
        model=model,
        system_prompt=system_prompt or "",
        use_stream=stream,
        currency=currency,
    )
    node = MistralChatNode()
    context = LocalProcessContext(on_partial_outputs=print_partial)

    outputs = await node.process(data, {"prompt": DataValue(type="string", value=prompt)}, context)

    text = outputs["response"].value
    print(text[printed:])
    if "tokenDetails" in outputs:
        print("\n" + json.dumps(outputs["tokenDetails"].value, indent=2))
    return outputs


def main() -> None:
    """Main entry point."""
    parser = argparse.ArgumentParser(
        description="Call the Mistral chat completions API",
        formatter_class=argparse.ArgumentDefaultsHelpFormatter,
    )
    parser.add_argument("--prompt", required=True, help="User prompt")
    parser.add_argument("--model", default=DEFAULT_MODEL, help="Model id")
    parser.add_argument("--system-prompt", default=None, help="System prompt")
    parser.add_argument(
        "--no-stream",
        action="store_true",
        help="Wait for the complete response instead of streaming",
    )
    parser.add_argument(
        "--currency",
        type=Currency,
        choices=list(Currency),
        default=Currency.USD,
        help="Currency for the cost estimate",
    )

    args = parser.parse_args()

    try:
        asyncio.run(
            run_chat(
                prompt=args.prompt,
                model=args.model,
                system_prompt=args.system_prompt,
                stream=not args.no_stream,
                currency=args.currency,
            )
        )
    except MistralNodeError as e:
        logger.error(f"[{e.code.value}] {e.message}")
        sys.exit(1)


if __name__ == "__main__":
    main()
