"""
JSON-RPC access to the active EVM network.

Sync Web3 calls are wrapped in run_in_executor() so a slow RPC round-trip never
blocks the event loop. Balances are never cached: every call re-queries the chain.
"""

import asyncio
import functools
import logging
from typing import Any

from eth_account.signers.local import LocalAccount
from web3 import Web3
from web3.exceptions import TransactionNotFound

import config
from enums.network import Network
from exceptions.base import ShopException
from exceptions.chain import ChainReadException, TransferFailedException

logger = logging.getLogger(__name__)

# ERC20: only the functions and events used at runtime
ERC20_ABI = [
    {
        "constant": True,
        "inputs": [{"name": "account", "type": "address"}],
        "name": "balanceOf",
        "outputs": [{"name": "", "type": "uint256"}],
        "type": "function",
    },
    {
        "constant": True,
        "inputs": [],
        "name": "decimals",
        "outputs": [{"name": "", "type": "uint8"}],
        "type": "function",
    },
    {
        "inputs": [
            {"name": "to", "type": "address"},
            {"name": "amount", "type": "uint256"},
        ],
        "name": "transfer",
        "outputs": [{"name": "", "type": "bool"}],
        "stateMutability": "nonpayable",
        "type": "function",
    },
    {
        "anonymous": False,
        "inputs": [
            {"indexed": True, "name": "from", "type": "address"},
            {"indexed": True, "name": "to", "type": "address"},
            {"indexed": False, "name": "value", "type": "uint256"},
        ],
        "name": "Transfer",
        "type": "event",
    },
]

TRANSFER_EVENT_TOPIC = Web3.to_hex(Web3.keccak(text="Transfer(address,address,uint256)"))


def build_web3(network: Network) -> Web3:
    rpc_url = network.rpc_url(
        alchemy_api_key=config.ALCHEMY_API_KEY,
        infura_project_id=config.INFURA_PROJECT_ID,
        bsc_rpc_url=config.BSC_RPC_URL,
        override=config.RPC_URL,
    )
    return Web3(Web3.HTTPProvider(rpc_url, request_kwargs={"timeout": config.RPC_TIMEOUT_SECONDS}))


class ChainReader:
    """
    Reads balances, receipts and gas data, and submits locally signed transfers.

    Usage:
        reader = ChainReader(Network.BASE)
        units = await reader.token_balance("0x...")
    """

    def __init__(self, network: Network | None = None, w3: Web3 | None = None):
        self.network = network or config.ACTIVE_NETWORK
        self.w3 = w3 if w3 is not None else build_web3(self.network)
        self._token_contract = None
        # decimals() is immutable per contract, the only value kept between calls
        self._token_decimals: int | None = None

    async def _run(self, operation: str, fn, *args, **kwargs) -> Any:
        try:
            return await asyncio.get_running_loop().run_in_executor(
                None, functools.partial(fn, *args, **kwargs)
            )
        except ShopException:
            raise
        except Exception as e:
            logger.warning(f"RPC {operation} failed on {self.network.value}: {type(e).__name__}: {e}")
            raise ChainReadException(operation, f"{type(e).__name__}: {e}", self.network.value) from e

    @property
    def token_address(self) -> str:
        return Web3.to_checksum_address(self.network.settlement_token_address)

    def token_contract(self):
        if self._token_contract is None:
            self._token_contract = self.w3.eth.contract(address=self.token_address, abi=ERC20_ABI)
        return self._token_contract

    async def native_balance(self, address: str) -> int:
        """Balance in wei."""
        return int(await self._run("get_balance", self.w3.eth.get_balance, Web3.to_checksum_address(address)))

    async def token_balance(self, address: str) -> int:
        """Settlement-token balance in the token's smallest unit."""
        contract = self.token_contract()
        call = contract.functions.balanceOf(Web3.to_checksum_address(address)).call
        return int(await self._run("balanceOf", call))

    async def token_decimals(self) -> int:
        if self._token_decimals is None:
            call = self.token_contract().functions.decimals().call
            self._token_decimals = int(await self._run("decimals", call))
        return self._token_decimals

    async def block_number(self) -> int:
        return int(await self._run("block_number", lambda: self.w3.eth.block_number))

    async def transaction_receipt(self, tx_hash: str) -> dict | None:
        """Receipt of a mined transaction, None while it is pending or unknown."""
        def _fetch():
            try:
                return self.w3.eth.get_transaction_receipt(tx_hash)
            except TransactionNotFound:
                return None

        receipt = await self._run("get_transaction_receipt", _fetch)
        return dict(receipt) if receipt is not None else None

    async def confirmations(self, tx_hash: str) -> int:
        """Current block height minus the receipt's block height, 0 if unmined."""
        receipt = await self.transaction_receipt(tx_hash)
        if receipt is None or receipt.get("blockNumber") is None:
            return 0
        current = await self.block_number()
        return max(0, current - int(receipt["blockNumber"]))

    async def estimate_gas(self, tx: dict) -> int:
        return int(await self._run("estimate_gas", self.w3.eth.estimate_gas, tx))

    async def current_gas_price(self) -> int:
        return int(await self._run("gas_price", lambda: self.w3.eth.gas_price))

    async def estimate_token_transfer_gas(self, sender: str, to: str, amount: int) -> int:
        fn = self.token_contract().functions.transfer(Web3.to_checksum_address(to), amount)
        return int(await self._run("estimate_gas", fn.estimate_gas, {"from": Web3.to_checksum_address(sender)}))

    async def _submit(self, signer: LocalAccount, build_tx) -> str:
        """
        Sign locally, submit, wait for inclusion.

        Returns the 0x-prefixed tx hash. Raises TransferFailedException when the
        transaction is rejected, reverted or not included within the receipt timeout.
        """
        def _execute():
            nonce = self.w3.eth.get_transaction_count(signer.address)
            tx = build_tx(nonce)
            signed = signer.sign_transaction(tx)
            tx_hash = self.w3.eth.send_raw_transaction(signed.raw_transaction)
            receipt = self.w3.eth.wait_for_transaction_receipt(
                tx_hash, timeout=config.TRANSFER_RECEIPT_TIMEOUT_SECONDS
            )
            return receipt, Web3.to_hex(tx_hash)

        try:
            receipt, tx_hash_hex = await asyncio.get_running_loop().run_in_executor(None, _execute)
        except Exception as e:
            raise TransferFailedException(signer.address, f"{type(e).__name__}: {e}") from e

        if receipt["status"] != 1:
            raise TransferFailedException(signer.address, "transaction reverted", tx_hash_hex)
        logger.info(f"TX SUCCESS [{self.network.value}]: {tx_hash_hex} | gas={receipt.get('gasUsed', 0)}")
        return tx_hash_hex

    async def send_token_transfer(self, signer: LocalAccount, to: str, amount: int,
                                  gas: int, gas_price: int) -> str:
        fn = self.token_contract().functions.transfer(Web3.to_checksum_address(to), amount)

        def _build(nonce: int) -> dict:
            return fn.build_transaction({
                "from": signer.address,
                "nonce": nonce,
                "gas": gas,
                "gasPrice": gas_price,
                "chainId": self.network.chain_id,
            })

        return await self._submit(signer, _build)

    async def send_native_transfer(self, signer: LocalAccount, to: str, value: int,
                                   gas: int, gas_price: int) -> str:
        def _build(nonce: int) -> dict:
            return {
                "from": signer.address,
                "to": Web3.to_checksum_address(to),
                "value": value,
                "nonce": nonce,
                "gas": gas,
                "gasPrice": gas_price,
                "chainId": self.network.chain_id,
            }

        return await self._submit(signer, _build)

    async def find_incoming_token_transfer(self, address: str, min_amount: int = 0,
                                           lookback_blocks: int | None = None) -> str | None:
        """
        Best-effort lookup of the funding transaction of a payment address.

        Scans settlement-token Transfer logs to `address` over the last N blocks and
        returns the newest qualifying tx hash, or None. Providers cap log ranges,
        so callers must treat None as "unknown", not as "unpaid".
        """
        lookback = lookback_blocks or config.INCOMING_TRANSFER_LOOKBACK_BLOCKS
        latest = await self.block_number()
        to_topic = "0x" + "0" * 24 + Web3.to_checksum_address(address)[2:].lower()
        log_filter = {
            "fromBlock": max(0, latest - lookback),
            "toBlock": latest,
            "address": self.token_address,
            "topics": [TRANSFER_EVENT_TOPIC, None, to_topic],
        }
        logs = await self._run("get_logs", self.w3.eth.get_logs, log_filter)
        for log in reversed(list(logs)):
            value = int(Web3.to_hex(log["data"]), 16) if log.get("data") else 0
            if value >= min_amount:
                return Web3.to_hex(log["transactionHash"])
        return None
