# pacrelay

pacrelay serves a proxy auto-config (PAC) file on the local machine. It can
also relay plain HTTP and HTTPS `CONNECT` traffic to an upstream SOCKS5 proxy
that runs on `127.0.0.1`.

## Installation

```
pip install .
```

There are no runtime dependencies beyond the standard library.

## Command line

```
pacrelay --help
pacrelay --version
pacrelay -c ~/.config/pacrelay/config.ini
```

`pacrelay` runs until it receives SIGINT or SIGTERM. It does the following:

1. It works out a configuration path. This is the `-c` value, or else
   `~/.config/trojan-qt5/config.ini` (see `pacrelay.cli.default_config_path`).
   It creates the directory of that path if needed. The file itself is not
   read; only its directory is used.
2. It logs to `gui.log` in that directory, or to `--log-file`.
3. It keeps PAC files in the `pac/` subdirectory. If `--templates` names a
   directory, these files are copied from it when they are missing:
   `user-rule.txt`, `gfwlist.txt` and the templates `trojan_gfw.pac`,
   `trojan_lanip.pac`, `trojan_white.pac`, `trojan_white_advanced.pac`,
   `trojan_white_r.pac` and `trojan_cnip.pac`. If `proxy.pac` does not exist
   and `trojan_gfw.pac` does, it generates `proxy.pac` in `GFWLIST` mode.
4. If `--pac-mode` is given, it generates `proxy.pac` again in that mode.
5. It serves `proxy.pac` over HTTP on `--pac-port`. If the port cannot be
   bound, it logs a warning and carries on.
6. With `--http-mode`, it also runs the HTTP proxy on `--http-port`. The proxy
   forwards through the SOCKS5 proxy at `127.0.0.1:--socks-port`.

Options:

| option | meaning | default |
|---|---|---|
| `-c`, `--config` | configuration file path | see above |
| `--log-file` | log file | `gui.log` next to the config |
| `--templates` | directory holding the PAC templates | none |
| `--pac-mode` | `CNIP`, `GFWLIST`, `LAN`, `WHITE`, `WHITE_ADVANCED`, `WHITE_R` | none |
| `--gfwlist-url` | fetch the rule list from this URL through the SOCKS5 proxy | local `gfwlist.txt` |
| `--socks-port` | local SOCKS5 proxy port | 1080 |
| `--http-port` | HTTP proxy port | 1081 |
| `--pac-port` | PAC server port | 8070 |
| `--http-mode` | also run the HTTP proxy | off |
| `--share-over-lan` | listen on all interfaces | off |
| `--ipv6` | listen on IPv6 addresses | off |

The listen address follows these settings. The PAC server and the HTTP proxy
both use it (`pacrelay.pacserver.listen_address`):

| IPv6 | share over LAN | address     |
|------|----------------|-------------|
| no   | no             | `127.0.0.1` |
| no   | yes            | `0.0.0.0`   |
| yes  | no             | `::1`       |
| yes  | yes            | `::`        |

## Library use

### PAC generation – `pacrelay.pachelper`

- `filter_rules(lines)` drops empty lines, comment lines (`!`) and section
  lines (`[`).
- `decode_gfwlist(data)` decodes a base64 rule list leniently and splits it
  into lines.
- `fill_template(text, socks5_port, http_port, rules=None)` fills in the
  placeholders. `__SOCKS5__`, `__SOCKS__` and `__PROXY__` become addresses on
  `127.0.0.1`. If `rules` is given, `__RULES__` becomes a JSON array of them.
- `PacHelper` keeps a PAC directory and regenerates `proxy.pac`:
  - `load_rules()` joins the gfwlist rules with the user rules. The gfwlist
    comes from `gfwlist_url` when one is set, or else from `gfwlist.txt`.
  - `modify(filename)` generates `proxy.pac` from one template.
  - `type_modify(pac_type)` generates it for a named mode, then calls
    `on_reload` if that is set.
  - `request(url)` does a GET through the local SOCKS5 proxy.
  - `pac_url()` gives the URL the PAC server offers.

```python
from pacrelay.pachelper import filter_rules, fill_template

rules = filter_rules(["! comment", "[AutoProxy]", "||example.com", ""])
# ['||example.com']

pac = fill_template("return '__SOCKS5__';", 1080, 1081, rules)
# "return 'SOCKS5 127.0.0.1:1080';"
```

### User rules – `pacrelay.userrules`

`UserRules(directory).load()` reads `user-rule.txt`, and returns `""` if the
file is missing. `save(text)` writes the file with LF line endings.
`pac_dir(home)` gives `<home>/.config/trojan-qt5/pac`.

### PAC server – `pacrelay.pacserver`

`PacServer` has these parts:

- `pac_path`, `port`, `enable_ipv6` and `share_over_lan` settings.
- `listen()` starts a background thread. It returns `False` if binding fails.
- `close()` stops the server. `PacServer` also works as a context manager.
- `bound_port` gives the port in use.
- `handle_request(method, path)` answers `GET /proxy.pac` with status 200, the
  content type `application/x-ns-proxy-autoconfig` and the file contents. Any
  other request gets 404.

### HTTP proxy – `pacrelay.httpproxy`

`HttpProxy(socks_host, socks_port)` is an asyncio server.

- `await listen(host, port)` starts it and returns the bound port.
- `await close()` stops it.

Plain requests are rewritten to origin form and sent through SOCKS5. Requests
from one client to the same `host:port` reuse one upstream connection.
`CONNECT` gets `HTTP/1.0 200 Connection established` and then a two-way
tunnel. The module also has these helpers:

- `parse_request(data)` returns a `ProxyRequest`. It raises `ValueError` if the
  request line is missing or the URL cannot be used.
- `socks5_connect(host, port, proxy_host, proxy_port)` opens a stream through
  the SOCKS5 proxy.

### Logging – `pacrelay.logger`

`init(path)` sends debug-level messages and above to a file. Use `debug`,
`info`, `warning` and `error` to log.

### Display helpers

- `pacrelay.statusbar.StatusBar` holds the label texts for the local ports and
  the traffic figures. Update it with `refresh`, `update_port_status` and
  `update_speed_labels`.
- `pacrelay.colorgrid.ColorGrid` is a grid of named colours, given as `#rgb`,
  `#rrggbb` or `#aarrggbb`. It has arrow-key focus movement (`Key`), a single
  selection and an optional "more" cell.
- `pacrelay.colorpicker.ColorPicker` keeps a current colour backed by a grid.
  It offers the 17 standard colours and notifies listeners added with
  `connect`. `standard_grid()` builds a grid of the standard colours.

These are plain data models. They draw nothing on screen.

## What it does not do

- It reads no settings from the configuration file. Everything is set on the
  command line.
- It ships no PAC templates or gfwlist. Point `--templates` at a directory
  that holds them. Without `trojan_gfw.pac`, no `proxy.pac` is generated.
- It does not change the operating system's proxy settings. `PacHelper` only
  calls the `on_reload` hook you pass in.
- It is not a SOCKS5 server and does not connect to remote proxy servers
  itself. The HTTP proxy needs a SOCKS5 proxy already running on
  `127.0.0.1`.
- It has no graphical interface, connection list, subscriptions or QR codes.

## Tests

```
pip install .[test]
pytest
```