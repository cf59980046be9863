import asyncio
import sys

from lightningrpc import ConnectionPolicy, LightningRpc, RemoteError


async def main(socket_path: str, destination: str, amount: int) -> None:
    async with LightningRpc(
        socket_path, connection_policy=ConnectionPolicy.PERSISTENT
    ) as ln:
        invoice = await ln.invoice(amount, "example")
        try:
            route = await ln.get_route(destination, amount, 1.0)
        except RemoteError as e:
            print(f"No route ({e.code}): {e.message}")
            return

        print(f"Route with {len(route.hops)} hop(s):")
        for hop in route.hops:
            print(f"  {hop.node_id} via {hop.channel}: {hop.amount_msat} msat")

        sent = await ln.send_payment(route.hops, invoice.payment_hash)
        print(f"Paid, preimage {sent.payment_key}")


if __name__ == "__main__":
    asyncio.run(main(sys.argv[1], sys.argv[2], int(sys.argv[3])))
