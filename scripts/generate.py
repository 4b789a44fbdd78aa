#!/usr/bin/env python3
"""
Tunnel Configuration Generator

Main entry point for generating the packet tunnel engine configuration
on one endpoint.

Usage:
    python scripts/generate.py --role initiator --initiator-ip 1.2.3.4 --responder-ip 5.6.7.8 --ports 443 8443
    python scripts/generate.py -c tunnel.yaml -o /root/packettunnel/config.json
    python scripts/generate.py --role responder --stdout
"""

import argparse
import logging
import os
import sys
from typing import Callable, Dict, Any, List, Optional

# Add parent directory to path for imports when running as script
script_dir = os.path.dirname(os.path.abspath(__file__))
project_root = os.path.dirname(script_dir)
if project_root not in sys.path:
    sys.path.insert(0, project_root)


def setup_logging(verbose: bool = False) -> None:
    """Configure logging."""
    level = logging.DEBUG if verbose else logging.INFO
    logging.basicConfig(
        level=level,
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S"
    )


def prompt_value(question: str, ask: Callable[[str], str] = input) -> str:
    """Ask until a non-empty answer is given."""
    while True:
        answer = ask(question).strip()
        if answer:
            return answer


def prompt_ports(ask: Callable[[str], str] = input) -> List[int]:
    """
    Ask for ports one per line until "done" is entered.

    Non-numeric answers are reported and asked again.
    """
    from coordinator import PORT_SENTINEL, is_port_token

    logger = logging.getLogger(__name__)
    print(f"Enter ports to forward (e.g. 443 8443 80), type '{PORT_SENTINEL}' to finish:")

    ports = []
    while True:
        answer = ask("Port: ").strip()
        if answer == PORT_SENTINEL:
            break
        if is_port_token(answer):
            ports.append(int(answer))
        else:
            logger.warning(f"Invalid port number: {answer!r}")
    return ports


def resolve_inputs(
    args: argparse.Namespace,
    ask: Callable[[str], str] = input
) -> Dict[str, Any]:
    """
    Merge command line, profile and interactive answers.

    Command line values win over the profile; anything still missing is
    asked for interactively.
    """
    from engine.build import TunnelParams, INITIATOR
    from inventory import load_profile, list_ports, DEFAULT_OUTPUT
    from coordinator import parse_ports

    profile: Dict[str, Any] = {}
    if args.config:
        profile = load_profile(args.config)

    role = args.role or profile.get("role")
    if not role:
        role = prompt_value("Is this server 'initiator' or 'responder'? ", ask)

    initiator_ip = args.initiator_ip or profile.get("initiator_ip")
    if not initiator_ip:
        initiator_ip = prompt_value("Enter initiator server public IP: ", ask)

    responder_ip = args.responder_ip or profile.get("responder_ip")
    if not responder_ip:
        responder_ip = prompt_value("Enter responder server public IP: ", ask)

    ports: List[int] = []
    if role == INITIATOR:
        if args.ports is not None:
            ports = parse_ports(args.ports)
        elif profile.get("ports"):
            ports = parse_ports(list_ports(profile))
        else:
            ports = prompt_ports(ask)

    return {
        "role": role,
        "initiator_ip": initiator_ip,
        "responder_ip": responder_ip,
        "ports": ports,
        "output": args.output or profile.get("output") or DEFAULT_OUTPUT,
        "params": profile.get("params") or TunnelParams(),
    }


def main(argv: Optional[List[str]] = None) -> None:
    """Main entry point."""
    parser = argparse.ArgumentParser(
        description="Generate the packet tunnel engine configuration for one endpoint"
    )
    parser.add_argument(
        "-c", "--config",
        help="Path to tunnel profile (YAML)"
    )
    parser.add_argument(
        "--role",
        help="Endpoint role: initiator or responder"
    )
    parser.add_argument(
        "--initiator-ip",
        help="Public IPv4 address of the initiator server"
    )
    parser.add_argument(
        "--responder-ip",
        help="Public IPv4 address of the responder server"
    )
    parser.add_argument(
        "--ports",
        nargs="*",
        help="TCP ports to forward (initiator only; prompted when omitted)"
    )
    parser.add_argument(
        "-o", "--output",
        help="Output file path (default: /root/packettunnel/config.json)"
    )
    parser.add_argument(
        "-f", "--format",
        choices=["json", "text"],
        default="json",
        help="Output format: json (engine configuration) or text (report) (default: json)"
    )
    parser.add_argument(
        "--stdout",
        action="store_true",
        help="Print the result instead of writing the output file"
    )
    parser.add_argument(
        "-v", "--verbose",
        action="store_true",
        help="Enable verbose output"
    )

    args = parser.parse_args(argv)

    setup_logging(args.verbose)
    logger = logging.getLogger(__name__)

    # Import here to allow --help to work without dependencies
    from engine.build import EndpointPair, InvalidInput
    from inventory import ProfileError
    from coordinator import generate, GenerationError
    from output import WriteFailure, dumps, format_issues, to_report, to_text

    try:
        inputs = resolve_inputs(args)
        endpoints = EndpointPair(
            initiator_ip=inputs["initiator_ip"],
            responder_ip=inputs["responder_ip"],
        )

        write_json = args.format == "json" and not args.stdout
        result = generate(
            inputs["role"],
            endpoints,
            ports=inputs["ports"],
            output=inputs["output"] if write_json else None,
            params=inputs["params"],
        )

        if args.format == "json":
            if args.stdout:
                sys.stdout.write(dumps(result.graph))
            else:
                print(f"Configuration written to {result.path}")
        else:  # text format
            if args.output and not args.stdout:
                to_report(result.graph, args.output)
                print(f"Report written to {args.output}")
            else:
                print(to_text(result.graph))

    except ProfileError as e:
        logger.error(f"Profile error: {e}")
        sys.exit(1)
    except InvalidInput as e:
        for problem in e.problems:
            logger.error(f"Invalid input: {problem}")
        sys.exit(1)
    except GenerationError as e:
        logger.error(f"Generated topology rejected with {len(e.violations)} violation(s)")
        if args.format == "text" and e.graph is not None:
            print(to_text(e.graph, e.violations))
        else:
            print(format_issues(e.violations))
        sys.exit(1)
    except WriteFailure as e:
        logger.error(f"Write failure: {e}")
        sys.exit(1)
    except (EOFError, KeyboardInterrupt):
        logger.error("Input aborted")
        sys.exit(1)


if __name__ == "__main__":
    main()
