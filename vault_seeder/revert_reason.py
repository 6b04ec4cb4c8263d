"""Revert reason extraction.

Further reading

- `Web3.py Patterns: Revert Reason Lookups <https://snakecharmers.ethereum.org/web3py-revert-reason-parsing/>`_

"""

import logging

from hexbytes import HexBytes
from web3 import AsyncWeb3
from web3.exceptions import ContractLogicError, Web3Exception

logger = logging.getLogger(__name__)


async def fetch_transaction_revert_reason(
    web3: AsyncWeb3,
    tx_hash: HexBytes | str,
    unknown_error_message="<could not extract the revert reason>",
) -> str:
    """Gets a transaction revert reason.

    Ethereum nodes do not store the transaction failure reason in any database or index.
    We replay the transaction with ``eth_call`` against the block before it was mined.
    On a fork this state is always available.

    Example:

    .. code-block:: python

        receipt = await web3.eth.wait_for_transaction_receipt(tx_hash)
        if receipt["status"] == 0:
            reason = await fetch_transaction_revert_reason(web3, tx_hash)

    :param web3: Our JSON-RPC connection

    :param tx_hash: Transaction hash of which reason we extract by simulation.

    :param unknown_error_message:
        Return this message if the revert reason extraction fails.
        Check the logs for details.

    :return: The revert reason of the placeholder message if we could not extract the reason somehow.
    """

    if not isinstance(tx_hash, HexBytes):
        tx_hash = HexBytes(tx_hash)

    tx = await web3.eth.get_transaction(tx_hash)

    # build a new transaction to replay:
    replay_tx = {
        "to": tx["to"],
        "from": tx["from"],
        "value": tx["value"],
        "data": tx["input"],
        "gas": tx["gas"],
    }

    try:
        await web3.eth.call(replay_tx, tx["blockNumber"] - 1)
    except ContractLogicError as e:
        return e.args[0]
    except (Web3Exception, ValueError) as e:
        logger.debug("Revert exception result is: %s", e)
        return str(e)

    logger.error(
        "Transaction succeeded, when we tried to fetch its revert reason. To address: %s, hash: %s, tx block num: %s, gas: %s",
        tx["to"],
        tx_hash.hex(),
        tx["blockNumber"],
        tx["gas"],
    )
    return unknown_error_message
