from __future__ import annotations

from typing import Any, Dict, List, Optional

import httpx


class RpcClient:
    def __init__(
        self,
        rpc_url: str,
        timeout_s: float = 60.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        self.rpc_url = rpc_url
        self.client = httpx.AsyncClient(timeout=timeout_s, transport=transport)

    async def close(self) -> None:
        await self.client.aclose()

    async def __aenter__(self) -> "RpcClient":
        return self

    async def __aexit__(self, *exc: Any) -> None:
        await self.close()

    async def _call(self, method: str, params: List[Any]) -> Any:
        payload = {"jsonrpc": "2.0", "id": 1, "method": method, "params": params}
        resp = await self.client.post(self.rpc_url, json=payload)
        resp.raise_for_status()
        data = resp.json()
        if "error" in data:
            raise RuntimeError(f"RPC error: {data['error']}")
        return data.get("result")

    async def get_slot(self, commitment: str = "finalized") -> int:
        """Returns the current slot."""
        result = await self._call("getSlot", [{"commitment": commitment}])
        return int(result)

    async def get_block(self, slot: int) -> Dict[str, Any]:
        result = await self._call(
            "getBlock",
            [
                slot,
                {
                    "encoding": "json",
                    "transactionDetails": "none",
                    "rewards": False,
                    "maxSupportedTransactionVersion": 0,
                },
            ],
        )
        if not result or "blockhash" not in result:
            raise RuntimeError(f"Slot {slot}: getBlock returned no blockhash.")
        return result

    async def get_blockhash_for_slot(self, slot: int) -> str:
        block = await self.get_block(slot)
        return block["blockhash"]

    async def get_mint_decimals(self, mint: str) -> int:
        result = await self._call("getAccountInfo", [mint, {"encoding": "jsonParsed"}])
        try:
            return int(result["value"]["data"]["parsed"]["info"]["decimals"])
        except (KeyError, TypeError):
            raise RuntimeError(f"Unable to fetch mint info or parse decimals for {mint}")

    async def get_program_accounts_base64(
        self,
        program_id: str,
        mint: str,
        classic_token_program: bool,
    ) -> List[str]:
        """
        Returns base64 strings for account data.
        Note: For classic SPL Token accounts, we enforce dataSize=165.
        Token-2022 accounts can vary due to extensions.
        """
        filters: List[Dict[str, Any]] = [{"memcmp": {"offset": 0, "bytes": mint}}]
        if classic_token_program:
            filters.append({"dataSize": 165})

        results = await self._call(
            "getProgramAccounts",
            [program_id, {"encoding": "base64", "filters": filters}],
        )
        out: List[str] = []
        for item in results or []:
            # item['account']['data'] is [base64_str, "base64"]
            out.append(item["account"]["data"][0])
        return out
