from enum import Enum


class Network(str, Enum):
    BASE = "base"
    ETHEREUM = "ethereum"
    POLYGON = "polygon"
    BSC = "bsc"

    @property
    def chain_id(self) -> int:
        match self:
            case Network.BASE:
                return 8453
            case Network.ETHEREUM:
                return 1
            case Network.POLYGON:
                return 137
            case Network.BSC:
                return 56

    @property
    def native_symbol(self) -> str:
        match self:
            case Network.BASE | Network.ETHEREUM:
                return "ETH"
            case Network.POLYGON:
                return "MATIC"
            case Network.BSC:
                return "BNB"

    @property
    def settlement_token_address(self) -> str:
        """USDC contract of the platform's settlement token on this network (Binance-Peg USDC on BSC, 18 decimals)."""
        match self:
            case Network.BASE:
                return "0x833589fCD6eDb6E08f4c7C32D4f71b54bdA02913"
            case Network.ETHEREUM:
                return "0xA0b86991c6218b36c1d19D4a2e9Eb0cE3606eB48"
            case Network.POLYGON:
                return "0x2791Bca1f2de4661ED88A30C99A7a9449Aa84174"
            case Network.BSC:
                return "0x8AC76a51cc950d9822D68b83fE1Ad97B32Cd580d"

    def rpc_url(self, alchemy_api_key: str = "", infura_project_id: str = "",
                bsc_rpc_url: str = "", override: str = "") -> str:
        """
        Resolve the JSON-RPC endpoint.

        Preference: explicit override > Alchemy (when a key is present) > Infura > public RPC.
        Swapping providers never changes behaviour, only where the calls go.
        """
        if override:
            return override
        match self:
            case Network.BASE:
                if alchemy_api_key:
                    return f"https://base-mainnet.g.alchemy.com/v2/{alchemy_api_key}"
                return "https://mainnet.base.org"
            case Network.ETHEREUM:
                if alchemy_api_key:
                    return f"https://eth-mainnet.g.alchemy.com/v2/{alchemy_api_key}"
                if infura_project_id:
                    return f"https://mainnet.infura.io/v3/{infura_project_id}"
                return "https://ethereum-rpc.publicnode.com"
            case Network.POLYGON:
                if alchemy_api_key:
                    return f"https://polygon-mainnet.g.alchemy.com/v2/{alchemy_api_key}"
                if infura_project_id:
                    return f"https://polygon-mainnet.infura.io/v3/{infura_project_id}"
                return "https://polygon-rpc.com"
            case Network.BSC:
                # No Alchemy support for BSC
                return bsc_rpc_url or "https://bsc-dataseed.binance.org/"
