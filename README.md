# choosme

choosme picks which application opens a link. You list the browsers, or any
desktop applications, that you use. When you open a URI, choosme sends it
straight to the first application whose rules match. If none match, it shows
a small chooser window.

It needs only Python 3.11 or later. The chooser window uses `tkinter`. The
daemon requests use the `gdbus` command-line tool.

## Installation

    pip install .

## Configuration

choosme reads `config.toml` from `$XDG_CONFIG_HOME/choosme/`. When that
variable is unset, it reads from `~/.config/choosme/`.

Each `[[application]]` table needs a `path` to a `.desktop` file. A leading
`~/` in the path is expanded to the home directory. A table can also have:

- an `alias`, shown in the chooser instead of the entry's `Name`;
- `prefixes` and `regexps`, which send matching links to that application
  straight away.

For example:

    [[application]]
    path = "/usr/share/applications/firefox.desktop"
    alias = "Work"
    prefixes = ["https://intranet.example.com"]

    [[application]]
    path = "~/.local/share/applications/chromium.desktop"
    regexps = ["^https://(www\\.)?example\\.org/"]

Matching rules:

- Applications are checked in order, and the first match wins.
- For each application, prefixes are tried before regular expressions.
- A regular expression that does not compile is ignored.
- An entry with no prefixes and no regexps never matches on its own. It
  still appears in the chooser.

Desktop files:

- A desktop file that is missing, or that is not a valid entry of type
  `Application` with `Name` and `Exec` fields, is skipped with a warning.
- The `Exec` field codes (`%u`, `%U`, `%f`, `%F`, `%c`, `%k`, `%i`, `%%`) are
  expanded when the application is started.

A configuration with no `application` array, or with fields of the wrong
type, is an error.

## Usage

Open a link:

    choosme https://example.com

The steps are:

1. choosme first tries to give the link to a running service through
   `gdbus` (method `juif.fabien.choosme.Open`).
2. If that call fails, it reads the configuration and starts the first
   matching application.
3. If no application matches, it shows the chooser.

Control a running service on the session bus:

    choosme daemon --status            # print the applications as JSON
    choosme daemon --set-default 1     # set the default application index
    choosme daemon --unset-default     # unset the default application
    choosme daemon --set-default-next  # move to the next default, or back to none
    choosme daemon --waybar            # print a JSON object for a waybar custom module
    choosme daemon --kill              # stop the service

The `--waybar` object has these keys:

- `text` holds the name of the default application, or `Select` when there
  is none.
- `alt` holds that name in lower case, or `no-default` when there is none.
- `class` is `choosme-` followed by `alt` with the whitespace removed.

`--set-default-next` selects the application after the current default. With
no default set, it selects the first one. After the last one, it unsets the
default.

### The chooser window

The chooser is an undecorated window with one button per resolved
application, shown in configuration order.

- Click a button to open the link with that application.
- Press a digit key to pick a row. `1` is the first row, and `0` also picks
  the first row.
- Press Escape to hide the window.

Once an application is picked, the chooser closes.

### Logging

Logs go to standard output and to a file at
`$XDG_STATE_HOME/choosme/logs/choosme`, which defaults to
`~/.local/state/choosme/logs/choosme`. The file is rotated at midnight. Set
`CHOOSME_LOG` to a level name such as `DEBUG` or `WARNING` to change the
level. The default level is `INFO`.

## What this package does not do

choosme does not register a D-Bus service.

The `choosme daemon --…` requests, and the first step of `choosme <uri>`, talk
to a service named `juif.fabien.choosme` on the session bus. That service has
to be provided by something else.

`choosme daemon` with no flags reads the configuration and starts the
chooser hidden. It logs a warning that no D-Bus service is registered. Since
nothing can send it a link, it does not handle links sent to it.

The optional `style.css` in the configuration directory can be read with
`choosme.config.read_css_file`, but the chooser window does not apply it.

## Library use

- `choosme.config.Config`: `from_toml`, `read`, `find_matching_desktop_file`.
- `choosme.desktop_files`: `DesktopEntry`, `resolve_desktop_files`,
  `DesktopFileOpener`.
- `choosme.bus`: `DBusClient` and `parse_gvariant`.
- `choosme.app`: `next_default_index` and `waybar_output`.