"""Endpoint discovery through an external listing command."""

import re
import subprocess
import time
from typing import List, Optional

from ..exceptions import EndpointSourceError

IPV4_PATTERN = re.compile(r'\b(?:\d{1,3}\.){3}\d{1,3}\b')

# Pause between failed attempts at running the command
RETRY_DELAY_SECONDS = 3


def extract_ipv4(text: str) -> List[str]:
    """Pull IPv4-looking tokens out of free-form command output.

    Args:
        text: Raw command output

    Returns:
        Candidate addresses in first-seen order (not yet validated)
    """
    return IPV4_PATTERN.findall(text)


class EndpointSource:
    """Runs the discovery command and collects candidate IPv4 addresses."""

    def __init__(self, command: List[str], timeout: int = 30, retries: int = 3,
                 retry_delay: float = RETRY_DELAY_SECONDS):
        """Initialize endpoint source.

        Args:
            command: Command and arguments, e.g. ["solana", "gossip"]
            timeout: Seconds allowed for one run of the command
            retries: Number of attempts before giving up
            retry_delay: Seconds to wait between attempts
        """
        self.command = list(command)
        self.timeout = timeout
        self.retries = retries
        self.retry_delay = retry_delay

    def _run_once(self) -> Optional[str]:
        try:
            result = subprocess.run(
                self.command,
                capture_output=True,
                text=True,
                timeout=self.timeout
            )
        except FileNotFoundError:
            raise EndpointSourceError(f"Endpoint command not found: {self.command[0]}")
        except subprocess.TimeoutExpired:
            print(f"[WARN] Endpoint command timed out after {self.timeout}s")
            return None
        except OSError as e:
            print(f"[WARN] Endpoint command failed: {e}")
            return None

        if result.returncode != 0:
            stderr = result.stderr.strip().splitlines()
            detail = stderr[-1] if stderr else f"exit code {result.returncode}"
            print(f"[WARN] Endpoint command failed: {detail}")
            return None
        return result.stdout

    def fetch(self) -> List[str]:
        """Run the command until it yields addresses.

        Returns:
            Raw candidate addresses, unfiltered

        Raises:
            EndpointSourceError: If the command is missing or never produces addresses
        """
        command_str = " ".join(self.command)
        for attempt in range(1, self.retries + 1):
            print(f"[INFO] Fetching endpoints with '{command_str}' (attempt {attempt}/{self.retries})")
            output = self._run_once()
            if output:
                candidates = extract_ipv4(output)
                if candidates:
                    print(f"[OK] Endpoint command returned {len(candidates)} candidate addresses")
                    return candidates
                print("[WARN] Endpoint command output contained no IPv4 addresses")

            if attempt < self.retries:
                time.sleep(self.retry_delay)

        raise EndpointSourceError(
            f"Could not obtain endpoints from '{command_str}' after {self.retries} attempts"
        )
