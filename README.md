# cdnsync

`cdnsync` is a small content distribution network for keeping a local
directory in step with a central file store. It has four parts, each started
by its own command:

- **Meta + origin server** (`cdnsync-meta`): records, for every stored file,
  its hash, its timestamp and the CDN nodes that cache it. It answers clients
  with the node to fetch each file from or send it to, picking the nearest
  registered node by great-circle distance.
- **CDN node** (`cdnsync-cdn`): an HTTP cache of fixed capacity that drops
  the least recently used files when full. It pulls missing files from the
  file store, passes uploads on to it, and reports cache changes to the meta
  server.
- **File storage server** (`cdnsync-fss`): the permanent store of every file.
- **Client** (`cdnsync-client`): scans a local directory, asks the origin
  what to download or upload, and moves the files through CDN nodes.

## Installation

```
pip install .
```

To run the tests:

```
pip install ".[test]"
pytest
```

## Running a network

Addresses are given as `host:port`, without a scheme.

Start the meta and origin server first, since the other parts register with
it when they start:

```
cdnsync-meta localhost:4000 localhost:3000
```

The first argument is the meta address and the second the origin address.
Both must be given to take effect; otherwise `localhost:4000` and
`localhost:3000` are used. Metadata is kept in text files under
`./MetaData`. Press ENTER to stop both servers.

Start the file storage server, giving its own address and then the meta
address:

```
cdnsync-fss localhost:5000 localhost:4000
```

Both arguments are required; with fewer the command exits without serving.
Files are kept under `./FSS_Storage`. The server runs until interrupted
(Ctrl+C).

Start one or more CDN nodes, giving the node's address, the meta address,
the file store address and, optionally, a location code:

```
cdnsync-cdn localhost:2000 localhost:4000 localhost:5000 sf
```

The three addresses take effect only when all three are given; otherwise
`localhost:2000`, `localhost:4000` and `localhost:5000` are used. The
location codes are `la` (Los Angeles, the default), `sf` (San Francisco),
`st` (Seattle), `bh` (Bahamas), `nk` (North Korea) and `au` (Austin). With
any other code the node asks `ipecho.net` for its public IP address and looks
it up in an IP-range table read from `USA_edit.csv` in the working directory
(a header line, then `start,end,latitude,longitude` rows); if that fails the
node logs a warning and keeps position (0, 0). The cache lives under
`./cache` and holds at most 10,000,000 bytes. Press ENTER to stop the node.

## Syncing a directory

```
cdnsync-client --download ./mydir localhost:3000 sf
cdnsync-client --upload ./mydir localhost:3000 sf
cdnsync-client --sync ./mydir localhost:3000 sf
```

The arguments are the mode, the directory to keep in step (default `./`),
the origin address (default `localhost:3000`) and the client's location
code (default `la`, same codes as above). Run without arguments, the command
prints its usage.

The client finds its public IP address by running `dig` against a public
resolver, so `dig` must be installed. With an unknown location code it looks
its position up with the geoplugin.net service.

- `--download` fetches every stored file that the directory lacks or holds
  with a different hash.
- `--upload` sends every local file that is not stored yet or whose hash
  differs from the stored copy.
- `--sync` runs forever. Every ten seconds it compares modification
  timestamps with the stored ones: files newer locally are uploaded, the
  rest of the stored files are downloaded. The first round starts with a
  `--download`. Files deleted locally since the previous round are
  remembered and never transferred again; new local files trigger an
  upload.

Hidden files (names starting with a dot) are ignored.

## HTTP interfaces

All front ends are plain Flask applications, so they can be served by any
WSGI server or driven with Flask's test client:

- `cdnsync.origin_api.create_origin_app(origin)`: `POST /origin/explicit`
  and `POST /origin/sync`, taking and returning JSON.
- `cdnsync.meta_api.create_meta_app(meta, session=None)`:
  `POST /meta/update`, `DELETE /meta/delete` and `POST /meta/register`.
  After a file update it sends `DELETE` invalidations to every other node.
- `cdnsync.cdn_api.create_cdn_app(node)`: `GET`, `PUT` and `DELETE` on
  `/cdn/cache/<file>`. A `PUT` carries `?<hash>&<timestamp>` in its query.
- `cdnsync.fss.create_fss_app(store)`: `GET /get/<file>` and
  `POST /post/<file>`.

## Using it as a library

- `cdnsync.meta_server.MetaServer` holds the CDN registry and the metadata
  files; `cdnsync.origin.OriginServer` answers clients from it. Failed
  metadata operations raise `MetaError`.
- `cdnsync.cdn_node.CdnNode` is a cache directory with least-recently-used
  eviction (`write_file`, `load_file`, `delete_file`); its
  `cdnsync.cdn_sender.CdnSender` talks to the meta server and the file store
  and raises `SenderError` on failure.
- `cdnsync.fss.FileStore` is the file store's directory, and
  `cdnsync.fss.register_with_meta` announces it to the meta server.
- `cdnsync.client.Client` performs the syncing described above.
- `cdnsync.lru.LRUCache`, `cdnsync.address.distance_miles`,
  `cdnsync.filehash.hash_file` (SHA-256) and the helpers in `cdnsync.geo`
  are usable on their own.
- `cdnsync.crypto` offers AES-CFB `encrypt_contents` and
  `decrypt_contents` with key and IV kept in `.keyfile` and `.ivfile`. The
  client applies them only when `cdnsync.crypto.USE_CRYPTO` is true, which
  it is not by default. It is a prototype, not meant to protect real data.

## Limitations

- The CDN registry lives in memory: after the meta server restarts, nodes
  must register again.
- Node load is not measured; every registered node is treated as able to
  take more requests.
- There is no authentication or access control on any interface.