"""On-chain collaborators (ERC-20 token access via web3)."""
