import asyncio
import logging
import sys

from lightningrpc import LightningRpc, RpcError


async def main(socket_path: str) -> None:
    ln = LightningRpc(socket_path)

    try:
        info = await ln.get_info()
        print(f"Node {info.id} on port {info.port} at height {info.block_height}")

        peers = await ln.get_peers()
        for peer in peers.peers:
            print(f"  peer {peer.peer_id} {peer.state} connected={peer.connected}")
    except RpcError as e:
        print(f"Call failed: {e}", file=sys.stderr)
        sys.exit(1)


if __name__ == "__main__":
    logging.basicConfig(level=logging.DEBUG)
    asyncio.run(main(sys.argv[1] if len(sys.argv) > 1 else "lightning-rpc"))
