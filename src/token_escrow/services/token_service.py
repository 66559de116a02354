"""Token Service — wallet and asset plumbing around the escrow.

Funds wallets with lamports, creates mints and associated token accounts,
and mints supply. Everything except the airdrop is a signed transaction
processed by the runtime, exactly like an escrow instruction.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from solders.keypair import Keypair

from token_escrow.domain.exceptions import AccountNotInitializedError
from token_escrow.logging_config import get_logger
from token_escrow.programs.associated_token import (
    create_associated_token_account_instruction,
    get_associated_token_address,
)
from token_escrow.programs.token import (
    initialize_mint_instruction,
    mint_to_instruction,
    transfer_checked_instruction,
)
from token_escrow.runtime.transaction import build_transaction

if TYPE_CHECKING:
    from solders.pubkey import Pubkey

    from token_escrow.runtime.processor import Runtime
    from token_escrow.runtime.transaction import TransactionReceipt

logger = get_logger(__name__)


class TokenService:
    """Creates and funds the accounts an escrow trade needs."""

    def __init__(self, runtime: Runtime) -> None:
        self._runtime = runtime

    async def airdrop(self, address: Pubkey, lamports: int) -> int:
        return await self._runtime.airdrop(address, lamports)

    async def create_mint(
        self,
        payer: Keypair,
        decimals: int,
        mint_authority: Pubkey | None = None,
        mint: Keypair | None = None,
    ) -> Pubkey:
        """Create a new mint; the payer is the mint authority unless one is given."""
        mint = mint or Keypair()
        authority = mint_authority or payer.pubkey()
        ix = initialize_mint_instruction(mint.pubkey(), payer.pubkey(), authority, decimals)
        await self._runtime.process_transaction(build_transaction([ix], [payer, mint]))
        logger.info("token.mint_created", mint=str(mint.pubkey()), decimals=decimals)
        return mint.pubkey()

    async def create_associated_token_account(
        self,
        payer: Keypair,
        owner: Pubkey,
        mint: Pubkey,
        idempotent: bool = True,
    ) -> Pubkey:
        ix = create_associated_token_account_instruction(
            payer.pubkey(), owner, mint, idempotent=idempotent
        )
        await self._runtime.process_transaction(build_transaction([ix], [payer]))
        return get_associated_token_address(owner, mint)

    async def mint_to(
        self,
        mint: Pubkey,
        owner: Pubkey,
        authority: Keypair,
        amount: int,
    ) -> TransactionReceipt:
        """Mint `amount` into the owner's associated account, creating it if needed.

        The mint authority pays for the account when it has to be created.
        """
        destination = get_associated_token_address(owner, mint)
        instructions = [
            create_associated_token_account_instruction(
                authority.pubkey(), owner, mint, idempotent=True
            ),
            mint_to_instruction(mint, destination, authority.pubkey(), amount),
        ]
        receipt = await self._runtime.process_transaction(
            build_transaction(instructions, [authority])
        )
        logger.info("token.minted", mint=str(mint), owner=str(owner), amount=amount)
        return receipt

    async def transfer(
        self,
        owner: Keypair,
        mint: Pubkey,
        recipient: Pubkey,
        amount: int,
    ) -> TransactionReceipt:
        """Move tokens between two wallets' associated accounts."""
        async with self._runtime.snapshot() as store:
            mint_row = await store.mints.get(str(mint))
        if mint_row is None:
            raise AccountNotInitializedError(str(mint), kind="mint")
        ix = transfer_checked_instruction(
            source=get_associated_token_address(owner.pubkey(), mint),
            mint=mint,
            destination=get_associated_token_address(recipient, mint),
            authority=owner.pubkey(),
            amount=amount,
            decimals=mint_row.decimals,
        )
        return await self._runtime.process_transaction(build_transaction([ix], [owner]))

    async def lamports(self, address: Pubkey) -> int:
        async with self._runtime.snapshot() as store:
            account = await store.system_accounts.get(str(address))
        return account.lamports if account is not None else 0
